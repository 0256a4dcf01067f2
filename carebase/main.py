"""
carebase - main entry point.

Runs the API server with uvicorn:

    python -m carebase.main
"""

from __future__ import annotations

import uvicorn

from carebase.config import get_settings


def main():
    """Main entry point."""
    settings = get_settings()
    uvicorn.run(
        "carebase.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug and not settings.is_production,
    )


if __name__ == "__main__":
    main()
