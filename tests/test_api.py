"""
Tests for the HTTP endpoints.
"""

import pytest

from carebase.auth.login import bind_profile
from carebase.core.models import Binary


def _issue_text(response) -> str:
    body = response.json()
    assert body["resourceType"] == "OperationOutcome"
    return body["issue"][0]["details"]["text"]


# =============================================================================
# POST /auth/profile
# =============================================================================


class TestProfileEndpoint:
    @pytest.mark.asyncio
    async def test_missing_login(self, client):
        response = await client.post("/auth/profile", json={"profile": "m1"})

        assert response.status_code == 400
        assert _issue_text(response) == "Missing login"
        assert response.json()["issue"][0]["expression"] == ["login"]

    @pytest.mark.asyncio
    async def test_missing_profile(self, client):
        response = await client.post("/auth/profile", json={"login": "l1"})

        assert response.status_code == 400
        assert _issue_text(response) == "Missing profile"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        response = await client.post("/auth/profile", json=["not", "an", "object"])

        assert response.status_code == 400
        assert response.json()["resourceType"] == "OperationOutcome"

    @pytest.mark.asyncio
    async def test_binds_profile(self, client, repo, create_practitioner_user, create_test_login):
        user, project, practitioner, membership = await create_practitioner_user()
        login = await create_test_login(user)

        response = await client.post("/auth/profile", json={"login": login.id, "profile": membership.id})

        assert response.status_code == 200
        assert response.json() == {"login": login.id, "code": login.code}

        stored = (await repo.read_resource("Login", login.id)).unwrap()
        assert stored.project.reference == f"Project/{project.id}"
        assert stored.profile.reference == f"Practitioner/{practitioner.id}"

    @pytest.mark.asyncio
    async def test_invalid_state_messages(self, client, repo, create_practitioner_user, create_test_login):
        user, _, _, membership = await create_practitioner_user()
        revoked = await create_test_login(user, revoked=True)
        granted = await create_test_login(user, granted=True)
        bound = await create_test_login(user)
        await bind_profile(repo, bound.id, membership.id)

        messages = []
        for login in (revoked, granted, bound):
            response = await client.post("/auth/profile", json={"login": login.id, "profile": membership.id})
            assert response.status_code == 400
            messages.append(_issue_text(response))

        assert messages == ["Login revoked", "Login granted", "Login profile set"]

    @pytest.mark.asyncio
    async def test_unknown_membership(self, client, create_practitioner_user, create_test_login):
        user, _, _, _ = await create_practitioner_user()
        login = await create_test_login(user)

        response = await client.post("/auth/profile", json={"login": login.id, "profile": "nope"})

        assert response.status_code == 400
        assert _issue_text(response) == "Profile not found"

    @pytest.mark.asyncio
    async def test_unknown_login(self, client):
        response = await client.post("/auth/profile", json={"login": "nope", "profile": "m1"})
        assert response.status_code == 404


# =============================================================================
# GET /storage/{id}
# =============================================================================


class TestStorageEndpoint:
    @pytest.mark.asyncio
    async def test_unsigned_request(self, client):
        response = await client.get("/storage/B1")

        assert response.status_code == 401
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_missing_binary(self, client):
        response = await client.get("/storage/B1", params={"Signature": "x"})

        assert response.status_code == 404
        assert response.json()["resourceType"] == "OperationOutcome"

    @pytest.mark.asyncio
    async def test_streams_binary(self, client, repo, storage):
        data = b"%PDF-1.4 fake document body"
        binary = (await repo.create_resource(Binary(content_type="application/pdf", size=len(data)))).unwrap()
        await storage.content.write_binary(binary, data)

        response = await client.get(f"/storage/{binary.id}", params={"Signature": "x"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-length"] == str(len(data))
        assert response.content == data

    @pytest.mark.asyncio
    async def test_signed_url_round_trip(self, client, repo, storage):
        binary = (await repo.create_resource(Binary(content_type="application/octet-stream", size=3))).unwrap()
        await storage.content.write_binary(binary, b"\x00\x01\x02")

        response = await client.get(storage.content.get_presigned_url(binary))

        assert response.status_code == 200
        assert response.content == b"\x00\x01\x02"

    @pytest.mark.asyncio
    async def test_deleted_binary(self, client, repo):
        binary = (await repo.create_resource(Binary(content_type="text/plain"))).unwrap()
        await repo.delete_resource("Binary", binary.id)

        response = await client.get(f"/storage/{binary.id}", params={"Signature": "x"})
        assert response.status_code == 410


# =============================================================================
# /fhir/R4
# =============================================================================


class TestFhirEndpoints:
    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get("/fhir/R4/Patient/123")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_rejects_bad_token(self, client):
        response = await client.get("/fhir/R4/Patient/123", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_crud(self, client, auth_headers):
        response = await client.post(
            "/fhir/R4/Patient",
            json={"resourceType": "Patient", "name": [{"given": ["Jane"], "family": "Doe"}]},
            headers=auth_headers,
        )
        assert response.status_code == 201
        patient = response.json()
        assert patient["meta"]["author"]["reference"] == "Practitioner/practitioner-1"
        assert response.headers["etag"] == f'W/"{patient["meta"]["versionId"]}"'

        response = await client.get(f"/fhir/R4/Patient/{patient['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["name"][0]["family"] == "Doe"

        response = await client.put(
            f"/fhir/R4/Patient/{patient['id']}",
            json={**patient, "birthDate": "1980-02-02"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["birthDate"] == "1980-02-02"

        response = await client.get(f"/fhir/R4/Patient/{patient['id']}/_history", headers=auth_headers)
        assert response.json()["resourceType"] == "Bundle"
        assert len(response.json()["entry"]) == 2

        response = await client.delete(f"/fhir/R4/Patient/{patient['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(f"/fhir/R4/Patient/{patient['id']}", headers=auth_headers)
        assert response.status_code == 410

    @pytest.mark.asyncio
    async def test_create_ignores_client_ownership(self, client, auth_headers):
        response = await client.post(
            "/fhir/R4/Patient",
            json={
                "resourceType": "Patient",
                "meta": {
                    "project": "someone-elses-project",
                    "author": {"reference": "Practitioner/impostor"},
                    "versionId": "chosen",
                },
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        meta = response.json()["meta"]
        assert "project" not in meta
        assert meta["author"]["reference"] == "Practitioner/practitioner-1"
        assert meta["versionId"] != "chosen"

    @pytest.mark.asyncio
    async def test_stale_if_match(self, client, auth_headers):
        response = await client.post("/fhir/R4/Patient", json={"resourceType": "Patient"}, headers=auth_headers)
        patient = response.json()
        etag = response.headers["etag"]

        response = await client.put(
            f"/fhir/R4/Patient/{patient['id']}",
            json={**patient, "birthDate": "1980-02-02"},
            headers={**auth_headers, "If-Match": etag},
        )
        assert response.status_code == 200

        response = await client.put(
            f"/fhir/R4/Patient/{patient['id']}",
            json={**patient, "birthDate": "1990-03-03"},
            headers={**auth_headers, "If-Match": etag},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_read_version(self, client, auth_headers):
        response = await client.post("/fhir/R4/Patient", json={"resourceType": "Patient"}, headers=auth_headers)
        patient = response.json()
        version_id = patient["meta"]["versionId"]

        response = await client.get(f"/fhir/R4/Patient/{patient['id']}/_history/{version_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["meta"]["versionId"] == version_id

    @pytest.mark.asyncio
    async def test_mismatched_type(self, client, auth_headers):
        response = await client.post("/fhir/R4/Patient", json={"resourceType": "Practitioner"}, headers=auth_headers)

        assert response.status_code == 400
        assert _issue_text(response) == "Incorrect resource type"

    @pytest.mark.asyncio
    async def test_invalid_resource(self, client, auth_headers):
        response = await client.post("/fhir/R4/Binary", json={"resourceType": "Binary"}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resource_type", ["Login", "User", "ProjectMembership"])
    async def test_protected_types(self, client, auth_headers, resource_type):
        response = await client.get(f"/fhir/R4/{resource_type}/123", headers=auth_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "ok"}
