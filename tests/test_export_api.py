from __future__ import annotations

from app.authorization_client import AuthorizationOutcome

URL = "/v1/vaults/vault_a/export"


def _body(**overrides):
    body = {"query": "SELECT name FROM persons", "destination": "s3://exports/out.csv"}
    body.update(overrides)
    return body


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_export_success_returns_job_id(client, bearer, job_submitter):
    resp = client.post(URL, json=_body(), headers={"Authorization": bearer})

    assert resp.status_code == 200
    assert resp.json() == {"id": "req-fixed-1", "jobId": "job_run_1", "requestId": "abc123", "jobStatus": "INITIATED"}
    assert job_submitter.calls[0]["query"] == "SELECT name FROM persons"


def test_export_uses_cf_connecting_ip_for_audit(client, bearer, audit_records):
    client.post(URL, json=_body(), headers={"Authorization": bearer, "CF-Connecting-IP": "198.51.100.4"})
    assert audit_records[0]["client_ip"] == "198.51.100.4"


def test_export_falls_back_to_peer_address(client, bearer, audit_records):
    client.post(URL, json=_body(), headers={"Authorization": bearer})
    assert audit_records[0]["client_ip"] == "testclient"


def test_invalid_destination_is_bad_request(client, bearer):
    resp = client.post(URL, json=_body(destination="s3:///key"), headers={"Authorization": bearer})
    assert resp.status_code == 400
    assert resp.json() == {"id": "req-fixed-1", "message": "Invalid s3 destination path."}


def test_missing_authorization_header_is_unauthorized(client):
    resp = client.post(URL, json=_body())
    assert resp.status_code == 401
    assert resp.json()["message"] == "Auth Scheme not supported"


def test_unknown_vault_is_forbidden(client, bearer, authorizer, job_submitter):
    resp = client.post("/v1/vaults/vault_x/export", json=_body(), headers={"Authorization": bearer})
    assert resp.status_code == 403
    assert resp.json()["message"] == "Invalid Vault ID"
    assert authorizer.calls == []
    assert job_submitter.calls == []


def test_vault_rejection_status_is_passed_through(client, bearer, authorizer):
    authorizer.outcome = AuthorizationOutcome(correlation_id="r-1", status_code=401, body_text='{"error":"expired"}')
    resp = client.post(URL, json=_body(), headers={"Authorization": bearer})
    assert resp.status_code == 401
    assert resp.json()["message"] == '{"error":"expired"}'


def test_malformed_json_body_is_bad_request(client, bearer):
    resp = client.post(
        URL,
        content=b"{not json",
        headers={"Authorization": bearer, "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid request body."
    assert body["id"]


def test_unknown_route_uses_failure_shape(client):
    resp = client.get("/route-not-exists")
    assert resp.status_code == 404
    assert set(resp.json().keys()) == {"id", "message"}
