"""
Resource repository.

All reads and writes of stored resources go through Repository,
which reports results as (outcome, value) pairs.
"""

from carebase.fhir.repo import Repository

__all__ = [
    "Repository",
]
