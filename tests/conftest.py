"""
Shared test fixtures for carebase.

Uses in-memory resource storage and filesystem content storage under
pytest's tmp_path, so every test starts from empty storage.
"""

import asyncio
import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SENTRY_DSN", "")

from carebase.api.app import create_app  # noqa: E402
from carebase.auth.keys import AccessTokenClaims, generate_access_token  # noqa: E402
from carebase.core.models import (  # noqa: E402
    AccessPolicy,
    AuthMethod,
    Login,
    Practitioner,
    Project,
    ProjectMembership,
    Reference,
    User,
    create_reference,
)
from carebase.core.utils import generate_code, utc_now_iso  # noqa: E402
from carebase.fhir.repo import Repository  # noqa: E402
from carebase.storage import (  # noqa: E402
    InMemoryResourceStorage,
    LocalContentStorage,
    StorageProvider,
)


class InterleavingResourceStorage(InMemoryResourceStorage):
    """In-memory storage that yields to the event loop on every call, like real I/O."""

    async def get(self, resource_type, id):
        await asyncio.sleep(0)
        return await super().get(resource_type, id)

    async def query(self, resource_type, filters=None, limit=100, offset=0):
        await asyncio.sleep(0)
        return await super().query(resource_type, filters, limit, offset)

    async def append(self, version, expected_version):
        await asyncio.sleep(0)
        return await super().append(version, expected_version)


# =============================================================================
# Storage fixtures
# =============================================================================


def _content_storage(tmp_path) -> LocalContentStorage:
    return LocalContentStorage(
        str(tmp_path / "binary"),
        base_url="http://localhost:8103/storage/",
        signing_key="test-signing-key",
        chunk_size=4,
    )


@pytest.fixture
def storage(tmp_path) -> StorageProvider:
    """Fresh storage for each test."""
    return StorageProvider(resources=InMemoryResourceStorage(), content=_content_storage(tmp_path))


@pytest.fixture
def interleaving_storage(tmp_path) -> StorageProvider:
    """Storage whose operations are real suspension points."""
    return StorageProvider(resources=InterleavingResourceStorage(), content=_content_storage(tmp_path))


@pytest.fixture
def repo(storage) -> Repository:
    """System repository over the test storage."""
    return Repository(storage.resources)


# =============================================================================
# Seeding helpers
# =============================================================================


@pytest.fixture
def create_test_project(repo):
    """
    Factory that seeds a project, a client application and a membership
    letting the client act as itself in the project.
    """

    async def _create(**options):
        project = (await repo.create_resource(Project(
            name="Test Project",
            owner=Reference(reference=f"User/{uuid.uuid4()}"),
            strict_mode=True,
            features=["bots", "email"],
            secret=[{"name": "foo", "value_string": "bar"}],
            **options,
        ))).unwrap()

        client = (await repo.create_resource({
            "resourceType": "ClientApplication",
            "secret": str(uuid.uuid4()),
            "redirectUri": "https://example.com/",
            "meta": {"project": project.id},
        })).unwrap()

        membership = (await repo.create_resource(ProjectMembership(
            user=create_reference(client),
            profile=create_reference(client),
            project=create_reference(project),
        ))).unwrap()

        return project, client, membership

    return _create


@pytest.fixture
def create_practitioner_user(repo):
    """
    Factory that seeds a user with one membership acting as a practitioner.

    Returns (user, project, practitioner, membership).
    """

    async def _create(access_policy: AccessPolicy | None = None):
        project = (await repo.create_resource(Project(name="Clinic"))).unwrap()
        user = (await repo.create_resource(User(
            first_name="Alice",
            last_name="Smith",
            email=f"alice-{uuid.uuid4().hex[:8]}@example.com",
        ))).unwrap()
        practitioner = (await repo.create_resource(Practitioner(
            name=[{"given": ["Alice"], "family": "Smith"}],
            meta={"project": project.id},
        ))).unwrap()

        policy_ref = None
        if access_policy is not None:
            policy = (await repo.create_resource(access_policy)).unwrap()
            policy_ref = create_reference(policy)

        membership = (await repo.create_resource(ProjectMembership(
            project=create_reference(project),
            user=create_reference(user),
            profile=create_reference(practitioner),
            access_policy=policy_ref,
        ))).unwrap()

        return user, project, practitioner, membership

    return _create


@pytest.fixture
def create_test_login(repo):
    """Factory that seeds a pending Login for a user."""

    async def _create(user, **fields):
        login = Login(
            user=create_reference(user),
            auth_method=AuthMethod.PASSWORD,
            auth_time=utc_now_iso(),
            scope="openid",
            code=generate_code(),
            **fields,
        )
        return (await repo.create_resource(login)).unwrap()

    return _create



# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(storage):
    """HTTP client for an app wired to the test storage."""
    app = create_app(storage=storage)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """Bearer token for a practitioner acting in a project."""
    token = generate_access_token(AccessTokenClaims(
        login_id="login-1",
        sub="user-1",
        username="alice@example.com",
        profile="Practitioner/practitioner-1",
    ))
    return {"Authorization": f"Bearer {token}"}
