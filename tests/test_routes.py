import pytest
from flask_jwt_extended import create_access_token

from acadchain import config
from acadchain.app import create_app
from acadchain.services.ipfs_service import LocalContentStore
from acadchain.services.registry import CoordinatorRegistry

UNIVERSITY = "0xDEMO_UNIVERSITY_ADDRESS"


@pytest.fixture
def app():
    registry = CoordinatorRegistry(content_store=LocalContentStore())
    return create_app(config.TestConfig, registry=registry)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth(app):
    def _headers(identity, role, wallet=None):
        claims = {"role": role, "wallet_address": wallet, "demo": True}
        with app.app_context():
            token = create_access_token(identity=identity, additional_claims=claims)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def university(auth):
    return auth("university", "issuer", UNIVERSITY)


@pytest.fixture
def government(auth):
    return auth("government", "authority")


def _issue(client, headers, name="Jane Doe"):
    return client.post("/api/credentials/issue", headers=headers, json={
        "student_identifier": "did:x:1",
        "student_name": name,
        "course_name": "B.Sc. Computer Science",
    })


def test_requires_token(client):
    assert client.get("/api/system/status").status_code == 401


def test_issue_verify_revoke(client, university):
    response = _issue(client, university)
    assert response.status_code == 201
    credential = response.get_json()["credential"]
    assert credential["issuer_address"] == UNIVERSITY
    assert credential["is_local_only"] is True

    fingerprint = credential["fingerprint"]
    response = client.post("/api/verifier/verify", headers=university, json={"fingerprint": fingerprint})
    body = response.get_json()
    assert response.status_code == 200
    assert body["valid"] is True
    assert body["status"] == "verified"
    assert body["status_info"]["message"] == "Credential Verified"

    response = client.post(f"/api/credentials/{fingerprint}/revoke", headers=university)
    assert response.status_code == 200
    assert response.get_json()["credential"]["is_revoked"] is True

    response = client.post(f"/api/credentials/{fingerprint}/revoke", headers=university)
    assert response.status_code == 409
    assert "already revoked" in response.get_json()["error"]

    body = client.post("/api/verifier/verify", headers=university, json={"fingerprint": fingerprint}).get_json()
    assert body["status"] == "revoked"


def test_issue_validation(client, university):
    response = client.post("/api/credentials/issue", headers=university, json={"student_name": "Jane Doe"})
    assert response.status_code == 400


def test_holder_cannot_issue(client, auth):
    response = _issue(client, auth("student", "holder"))
    assert response.status_code == 403


def test_unknown_role_is_rejected(client, auth):
    response = client.get("/api/system/notifications", headers=auth("someone", "superuser"))
    assert response.status_code == 403


def test_malformed_fingerprint(client, auth):
    response = client.post("/api/verifier/verify", headers=auth("anyone", "verifier"), json={"fingerprint": "0x12"})
    assert response.status_code == 400


def test_unknown_fingerprint(client, auth):
    response = client.post(
        "/api/verifier/verify", headers=auth("anyone", "verifier"), json={"fingerprint": "0x" + "0" * 64}
    )
    assert response.status_code == 200
    assert response.get_json()["status"] == "not_found"


def test_pause_applies_to_every_session(client, university, government):
    response = client.post("/api/system/pause", headers=government)
    assert response.get_json() == {"paused": True}

    response = _issue(client, university)
    assert response.status_code == 409
    assert "paused" in response.get_json()["error"]

    client.post("/api/system/pause", headers=government)
    assert _issue(client, university).status_code == 201


def test_batch_issue(client, university):
    response = client.post("/api/credentials/batch-issue", headers=university, json={"records": [
        {"student_identifier": "did:x:1", "student_name": "Jane Doe", "course_name": "B.Sc. CS"},
        {"student_identifier": "did:x:2", "student_name": "John Roe"},
    ]})

    body = response.get_json()
    assert response.status_code == 200
    assert body["issued"] == 1
    assert body["failed"] == 1
    assert body["results"][1]["ok"] is False

    issued = client.get("/api/credentials/issued", headers=university).get_json()
    assert [c["student_identifier"] for c in issued] == ["did:x:1"]


def test_batch_verify(client, university):
    fingerprint = _issue(client, university).get_json()["credential"]["fingerprint"]

    response = client.post("/api/verifier/verify-batch", headers=university,
                           json={"fingerprints": [fingerprint, "0x" + "0" * 64]})

    assert [r["status"] for r in response.get_json()] == ["verified", "not_found"]


def test_issuer_management(client, government, university):
    response = client.post("/api/issuers", headers=government, json={"address": UNIVERSITY, "name": "Demo University"})
    assert response.status_code == 201
    assert response.get_json()["issuer"]["display_name"] == "Demo University"

    issuers = client.get("/api/issuers", headers=government).get_json()
    assert [i["address"] for i in issuers] == [UNIVERSITY]

    response = client.delete(f"/api/issuers/{UNIVERSITY}", headers=government)
    assert response.status_code == 200
    assert response.get_json()["issuer"]["is_authorized"] is False

    response = client.post("/api/issuers", headers=university, json={"address": UNIVERSITY, "name": "Self"})
    assert response.status_code == 403


def test_status_and_notifications(client, university):
    for i in range(12):
        _issue(client, university, name=f"Student {i}")

    status = client.get("/api/system/status", headers=university).get_json()
    assert status["mode"] == "local"
    assert status["paused"] is False
    assert status["wallet_balance"] == "0"

    notifications = client.get("/api/system/notifications", headers=university).get_json()
    assert len(notifications) == 10
    assert notifications[0]["title"] == "Credential Issued (Demo)"


def test_cache_endpoints(client, government, university):
    assert client.get("/api/verifier/cache", headers=government).get_json()["ttl_hours"] == 24
    assert client.delete("/api/verifier/cache", headers=university).status_code == 403
    assert client.delete("/api/verifier/cache", headers=government).status_code == 200
