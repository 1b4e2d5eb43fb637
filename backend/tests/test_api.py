from conftest import ADDRESS

HEADERS = {"operator-id": "admin-7"}


def _onboard(client):
    client.post("/api/issuers", json={
        "issuer_id": "verihubs", "name": "Verihubs", "authorized_claims": ["KYC_APPROVED"],
        "metadata": {"website": "https://verihubs.com"},
    }, headers=HEADERS)
    client.post("/api/identities", json={"user_address": ADDRESS, "user_id": "u1"}, headers=HEADERS)


def _issue(client, **extra):
    return client.post("/api/claims", json={
        "identity_id": ADDRESS, "claim_topic": "KYC_APPROVED", "issuer": "verihubs",
        "data": {"verification_id": "vh-9"}, **extra,
    }, headers=HEADERS)


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"


def test_topic_catalog(client):
    assert client.get("/api/topics/required").json() == ["KYC_APPROVED"]
    assert len(client.get("/api/topics").json()) == 5
    assert client.get("/api/topics/KYC_APPROVED").json()["default_expiry_days"] == 365

    created = client.post("/api/topics", json={
        "id": "AML_SCREENED", "name": "AML Screened", "category": "compliance",
    }, headers=HEADERS)
    assert created.status_code == 201

    patched = client.patch("/api/topics/AML_SCREENED", json={"renewable": True})
    assert patched.json()["renewable"] is True


def test_claim_flow_over_http(client):
    _onboard(client)

    verify = client.post(f"/api/identities/{ADDRESS}/verify").json()
    assert verify["is_verified"] is False
    assert verify["missing_claims"] == ["KYC_APPROVED"]

    issued = _issue(client)
    assert issued.status_code == 201
    claim = issued.json()
    assert claim["status"] == "active"

    verify = client.post(f"/api/identities/{ADDRESS}/verify", json={"report_expiry": True}).json()
    assert verify["is_verified"] is True
    assert verify["expires_in"] == {"KYC_APPROVED": 365}

    identity = client.get(f"/api/identities/{ADDRESS}").json()
    assert identity["status"] == "verified"
    assert identity["claims"][0]["claim_id"] == claim["id"]

    revoked = client.post(f"/api/claims/{claim['id']}/revoke", json={"reason": "document fraud"}, headers=HEADERS)
    assert revoked.json()["revocation_reason"] == "document fraud"

    again = client.post(f"/api/claims/{claim['id']}/revoke", json={"reason": "again"})
    assert again.status_code == 409
    assert again.json()["error_code"] == "INVALID_STATE"

    check = client.get(f"/api/claims/{claim['id']}/verify").json()
    assert check["is_valid"] is False

    trail = client.get(f"/api/identities/{ADDRESS}/audit").json()
    assert trail[0]["operation"] == "register"
    assert trail[0]["operator_id"] == "admin-7"
    assert client.get(f"/api/identities/{ADDRESS}/audit/verify").json()["valid"] is True


def test_error_mapping(client):
    _onboard(client)

    unauthorized = client.post("/api/claims", json={
        "identity_id": ADDRESS, "claim_topic": "KYC_APPROVED", "issuer": "fakeissuer",
    })
    assert unauthorized.status_code == 403
    assert unauthorized.json()["error_code"] == "UNAUTHORIZED_ISSUER"

    past = _issue(client, expires_at="2020-01-01T00:00:00Z")
    assert past.status_code == 400
    assert past.json()["error_code"] == "VALIDATION_ERROR"

    duplicate = client.post("/api/identities", json={"user_address": ADDRESS, "user_id": "u9"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "CONFLICT"

    missing = client.get("/api/claims/claim_nope")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"


def test_issuer_endpoints(client):
    _onboard(client)

    issuer = client.put("/api/issuers/verihubs/topics/ACCREDITED_INVESTOR").json()
    assert "ACCREDITED_INVESTOR" in issuer["authorized_claims"]
    issuer = client.delete("/api/issuers/verihubs/topics/ACCREDITED_INVESTOR").json()
    assert "ACCREDITED_INVESTOR" not in issuer["authorized_claims"]

    suspended = client.post("/api/issuers/verihubs/status", json={"status": "suspended", "reason": "review"})
    assert suspended.json()["status"] == "suspended"
    assert [i["id"] for i in client.get("/api/issuers", params={"status": "suspended"}).json()] == ["verihubs"]

    blocked = _issue(client)
    assert blocked.status_code == 403


def test_batch_endpoints(client):
    _onboard(client)
    claim_id = _issue(client).json()["id"]

    result = client.post("/api/claims/batch", json={"updates": [
        {"claim_id": claim_id, "data": {"document_types": ["KTP"]}},
        {"claim_id": "claim_unknown", "status": "revoked", "revocation_reason": "x"},
    ]}).json()
    assert (result["succeeded"], result["failed"]) == (1, 1)

    result = client.post("/api/identities/batch", json={"identities": [
        {"user_address": "0x" + "11" * 20, "user_id": "u2"},
        {"user_address": ADDRESS, "user_id": "u3"},
    ]}).json()
    assert [r["success"] for r in result["results"]] == [True, False]


def test_compliance_endpoints(client):
    _onboard(client)
    _issue(client)

    report = client.get("/api/compliance/report").json()
    assert report["verified_identities"] == 1
    assert report["compliance_score"] == 100.0

    check = client.get(f"/api/compliance/identities/{ADDRESS}").json()
    assert check["is_compliant"] is True

    assert client.get("/api/compliance/identities/0x" + "99" * 20).status_code == 404


def test_identity_audit_excludes_issuer_sharing_its_address(client):
    client.post("/api/issuers", json={
        "issuer_id": ADDRESS, "name": "Self-custodied issuer", "authorized_claims": ["KYC_APPROVED"],
    }, headers=HEADERS)
    client.post("/api/identities", json={"user_address": ADDRESS, "user_id": "u1"}, headers=HEADERS)

    trail = client.get(f"/api/identities/{ADDRESS}/audit").json()
    assert [e["operation"] for e in trail] == ["register"]
    assert client.get(f"/api/identities/{ADDRESS}/audit/verify").json()["total_entries"] == 1
