"""
Core module - resource models, outcomes and the resource type registry.

This module contains:
- models: Resource models (Login, Project, ProjectMembership, Binary, ...)
- outcome: Classified outcomes and the (outcome, value) result pair
- registry: Resource type registry
- utils: Shared utility functions
"""

from carebase.core.models import (
    AccessPolicy,
    AuthMethod,
    Binary,
    Bot,
    ClientApplication,
    FhirModel,
    Login,
    Meta,
    Patient,
    Practitioner,
    PROFILE_RESOURCE_TYPES,
    ProfileResource,
    Project,
    ProjectMembership,
    Reference,
    RelatedPerson,
    Resource,
    User,
    create_reference,
    get_reference_string,
    parse_reference,
)

from carebase.core.outcome import (
    Outcome,
    OutcomeAssertionError,
    OutcomeKind,
    RepositoryResult,
    assert_ok,
)

from carebase.core.registry import (
    RegistryError,
    ResourceTypeRegistry,
    get_registry,
    reset_registry,
)

from carebase.core.utils import (
    generate_code,
    generate_id,
    utc_now,
)

__all__ = [
    # Models
    "AccessPolicy",
    "AuthMethod",
    "Binary",
    "Bot",
    "ClientApplication",
    "FhirModel",
    "Login",
    "Meta",
    "Patient",
    "Practitioner",
    "PROFILE_RESOURCE_TYPES",
    "ProfileResource",
    "Project",
    "ProjectMembership",
    "Reference",
    "RelatedPerson",
    "Resource",
    "User",
    "create_reference",
    "get_reference_string",
    "parse_reference",
    # Outcomes
    "Outcome",
    "OutcomeAssertionError",
    "OutcomeKind",
    "RepositoryResult",
    "assert_ok",
    # Registry
    "RegistryError",
    "ResourceTypeRegistry",
    "get_registry",
    "reset_registry",
    # Utils
    "generate_code",
    "generate_id",
    "utc_now",
]
