"""
Resource models for carebase.

These are the resources the auth and repository core reads and writes.
The full clinical type catalog lives elsewhere; the models here carry
the fields the core depends on and let any other field ride along.

JSON uses FHIR camelCase names ("resourceType", "accessPolicy"),
Python attributes are snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class FhirModel(BaseModel):
    """Base for all FHIR-shaped models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_json_dict(self) -> dict:
        """Serialize with FHIR field names, dropping empty fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Datatypes
# =============================================================================


class Reference(FhirModel):
    """A typed pointer to another resource, as a "Type/id" string."""

    reference: str | None = None
    display: str | None = None


class Meta(FhirModel):
    """Metadata envelope assigned by the repository."""

    version_id: str | None = None
    last_updated: str | None = None
    project: str | None = None
    author: Reference | None = None


class HumanName(FhirModel):
    given: list[str] = Field(default_factory=list)
    family: str | None = None


class ProjectSecret(FhirModel):
    name: str
    value_string: str | None = None


# =============================================================================
# Resources
# =============================================================================


class Resource(FhirModel):
    """Common shape of every stored resource."""

    resource_type: str
    id: str | None = None
    meta: Meta | None = None


class Project(Resource):
    """Tenant boundary. Owns memberships, clients and everything created inside it."""

    resource_type: Literal["Project"] = "Project"
    name: str | None = None
    owner: Reference | None = None
    strict_mode: bool | None = None
    features: list[str] = Field(default_factory=list)
    secret: list[ProjectSecret] = Field(default_factory=list)


class User(Resource):
    resource_type: Literal["User"] = "User"
    first_name: str | None = None
    last_name: str | None = None
    email: EmailStr | None = None
    password_hash: str | None = None
    admin: bool | None = None
    project: Reference | None = None


class AccessPolicyResource(FhirModel):
    resource_type: str
    criteria: str | None = None
    readonly: bool | None = None


class AccessPolicy(Resource):
    resource_type: Literal["AccessPolicy"] = "AccessPolicy"
    name: str | None = None
    resource: list[AccessPolicyResource] = Field(default_factory=list)


class ProjectMembership(Resource):
    """A user's right to act as one profile within one project."""

    resource_type: Literal["ProjectMembership"] = "ProjectMembership"
    project: Reference
    user: Reference
    profile: Reference
    access_policy: Reference | None = None
    admin: bool | None = None

    @field_validator("profile")
    @classmethod
    def _check_profile_type(cls, value: Reference) -> Reference:
        resource_type = (value.reference or "").split("/")[0]
        if resource_type not in PROFILE_RESOURCE_TYPES:
            raise ValueError(f"Profile must be one of {', '.join(PROFILE_RESOURCE_TYPES)}")
        return value


class AuthMethod(str, Enum):
    PASSWORD = "password"
    GOOGLE = "google"
    EXTERNAL = "external"
    CLIENT = "client"
    EXCHANGE = "exchange"


class Login(Resource):
    """
    One authentication session.

    Created without project/profile, bound exactly once to a membership's
    project and profile, then granted. May be revoked before it is granted.
    """

    resource_type: Literal["Login"] = "Login"
    user: Reference
    auth_method: AuthMethod
    client: Reference | None = None
    project: Reference | None = None
    profile: Reference | None = None
    membership: Reference | None = None
    access_policy: Reference | None = None
    auth_time: str | None = None
    scope: str | None = None
    nonce: str | None = None
    code: str | None = None
    revoked: bool | None = None
    granted: bool | None = None

    @model_validator(mode="after")
    def _check_terminal_markers(self) -> Login:
        if self.revoked and self.granted:
            raise ValueError("Login cannot be both revoked and granted")
        return self


class Binary(Resource):
    """Metadata for byte content held by the content store."""

    resource_type: Literal["Binary"] = "Binary"
    content_type: str
    url: str | None = None
    size: int | None = Field(default=None, ge=0)
    security_context: Reference | None = None


# -----------------------------------------------------------------------------
# Profile resources (the identity a login acts as)
# -----------------------------------------------------------------------------


class Patient(Resource):
    resource_type: Literal["Patient"] = "Patient"
    name: list[HumanName] = Field(default_factory=list)
    birth_date: str | None = None


class Practitioner(Resource):
    resource_type: Literal["Practitioner"] = "Practitioner"
    name: list[HumanName] = Field(default_factory=list)


class RelatedPerson(Resource):
    resource_type: Literal["RelatedPerson"] = "RelatedPerson"
    patient: Reference | None = None
    name: list[HumanName] = Field(default_factory=list)


class ClientApplication(Resource):
    resource_type: Literal["ClientApplication"] = "ClientApplication"
    name: str | None = None
    secret: str | None = None
    redirect_uri: str | None = None


class Bot(Resource):
    resource_type: Literal["Bot"] = "Bot"
    name: str | None = None
    description: str | None = None


ProfileResource = Annotated[
    Union[Patient, Practitioner, RelatedPerson, ClientApplication, Bot],
    Field(discriminator="resource_type"),
]

PROFILE_RESOURCE_TYPES = ("Patient", "Practitioner", "RelatedPerson", "ClientApplication", "Bot")


# =============================================================================
# References
# =============================================================================


def get_reference_string(resource: Resource) -> str:
    """Return "Type/id" for a stored resource."""
    if not resource.id:
        raise ValueError(f"{resource.resource_type} has no id")
    return f"{resource.resource_type}/{resource.id}"


def create_reference(resource: Resource) -> Reference:
    """Create a fresh Reference pointing at a stored resource."""
    return Reference(reference=get_reference_string(resource))


def parse_reference(reference: Reference | str | None) -> tuple[str, str] | None:
    """
    Split a "Type/id" pointer.

    Returns None when the pointer is missing or does not have exactly
    two non-empty parts.
    """
    if isinstance(reference, Reference):
        reference = reference.reference
    if not reference:
        return None
    parts = reference.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]
