"""
Registry of resource types.

The repository only stores and resolves resource types that are
registered here. A "Type/id" reference whose type is not registered is
an invalid reference, and a candidate resource whose type is not
registered fails validation.
"""

from __future__ import annotations

from typing import Any

from carebase.core.models import (
    AccessPolicy,
    Binary,
    Bot,
    ClientApplication,
    Login,
    Patient,
    Practitioner,
    Project,
    ProjectMembership,
    RelatedPerson,
    Resource,
    User,
)


class RegistryError(Exception):
    """Raised when there's an error with the registry."""
    pass


class ResourceTypeRegistry:
    """Maps resourceType names to their models."""

    def __init__(self):
        self._types: dict[str, type[Resource]] = {}

    def register(self, model: type[Resource], name: str | None = None) -> None:
        """Register a resource model under its resourceType name."""
        name = name or model.model_fields["resource_type"].default
        if not name:
            raise RegistryError(f"Cannot determine resourceType for {model.__name__}")
        if name in self._types:
            raise RegistryError(f"Resource type '{name}' is already registered")
        self._types[name] = model

    def get(self, name: str) -> type[Resource]:
        if name not in self._types:
            raise RegistryError(f"Resource type '{name}' not found")
        return self._types[name]

    def is_registered(self, name: str) -> bool:
        return name in self._types

    def list_types(self) -> list[str]:
        return sorted(self._types)

    def parse(self, data: dict[str, Any]) -> Resource:
        """
        Validate a JSON resource against its registered model.

        Raises:
            RegistryError: resourceType missing or not registered
            pydantic.ValidationError: structurally invalid for its type
        """
        resource_type = data.get("resourceType")
        if not isinstance(resource_type, str):
            raise RegistryError("Missing resourceType")
        return self.get(resource_type).model_validate(data)


def _default_registry() -> ResourceTypeRegistry:
    registry = ResourceTypeRegistry()
    for model in (
        Project,
        ProjectMembership,
        User,
        Login,
        AccessPolicy,
        Binary,
        Patient,
        Practitioner,
        RelatedPerson,
        ClientApplication,
        Bot,
    ):
        registry.register(model)
    return registry


# Global registry instance
_registry: ResourceTypeRegistry | None = None


def get_registry() -> ResourceTypeRegistry:
    """Get the global resource type registry."""
    global _registry
    if _registry is None:
        _registry = _default_registry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


__all__ = [
    "RegistryError",
    "ResourceTypeRegistry",
    "get_registry",
    "reset_registry",
]
