import pathlib
import sys
from datetime import datetime, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.authorization_client import AuthorizationOutcome
from app.config import ExportApiConfig
from app.errors import AuditWriteError, JobSubmissionError
from app.main import create_app
from app.pipeline import ExportQueryOrchestrator
from app.repositories.job_audit import InMemoryJobAuditRepository

FIXED_NOW = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)


def issue_token(*, jti: object = "tok_123", secret: str = "unit-test-signing-key-0123456789abcdef") -> str:
    payload: dict[str, object] = {"sub": "user_a", "iat": int(FIXED_NOW.timestamp())}
    if jti is not None:
        payload["jti"] = jti
    return jwt.encode(payload, secret, algorithm="HS256")


class FakeAuthorizer:
    def __init__(self, outcome: AuthorizationOutcome | None = None) -> None:
        self.outcome = outcome or AuthorizationOutcome(correlation_id="abc123", status_code=200, body_text="{}")
        self.calls: list[dict[str, str]] = []

    def authorize(self, *, credential: str, query: str, vault_id: str, request_id: str) -> AuthorizationOutcome:
        self.calls.append(
            {"credential": credential, "query": query, "vault_id": vault_id, "request_id": request_id}
        )
        return self.outcome


class FakeJobSubmitter:
    def __init__(self, *, job_id: str = "job_run_1", error: str | None = None) -> None:
        self.job_id = job_id
        self.error = error
        self.calls: list[dict[str, object]] = []

    def submit(self, *, query: str, destination: str, request_id: str, region: str | None = None) -> str:
        self.calls.append({"query": query, "destination": destination, "request_id": request_id, "region": region})
        if self.error is not None:
            raise JobSubmissionError(self.error)
        return self.job_id


class FailingAuditRepository:
    def __init__(self, message: str = "connection refused") -> None:
        self.message = message
        self.attempts = 0

    def append(self, *, record):
        self.attempts += 1
        raise AuditWriteError(self.message)


@pytest.fixture
def config() -> ExportApiConfig:
    return ExportApiConfig.from_env(
        {
            "VAULT_URL": "https://vault.example.test",
            "ALLOWED_VAULT_IDS": "vault_a, vault_b",
            "APPLICATION_ID": "app-1",
            "EXECUTION_ROLE_ARN": "arn:aws:iam::123456789012:role/emr",
            "ENTRYPOINT": "s3://code/export.py",
            "LOG_URI": "s3://logs/emr/",
            "SECRETS": "vault/export-secret",
            "REGION": "us-east-1",
            "AUDIT_BACKEND": "memory",
        }
    )


@pytest.fixture
def authorizer() -> FakeAuthorizer:
    return FakeAuthorizer()


@pytest.fixture
def job_submitter() -> FakeJobSubmitter:
    return FakeJobSubmitter()


@pytest.fixture
def audit_records() -> list[dict]:
    return []


@pytest.fixture
def orchestrator(config, authorizer, job_submitter, audit_records) -> ExportQueryOrchestrator:
    return ExportQueryOrchestrator(
        config=config,
        authorizer=authorizer,
        job_submitter=job_submitter,
        audit_repository=InMemoryJobAuditRepository(audit_records),
        id_factory=lambda: "req-fixed-1",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client(orchestrator) -> TestClient:
    return TestClient(create_app(orchestrator))


@pytest.fixture
def token_factory():
    return issue_token


@pytest.fixture
def bearer() -> str:
    return f"Bearer {issue_token()}"


@pytest.fixture
def failing_audit() -> FailingAuditRepository:
    return FailingAuditRepository()


@pytest.fixture
def make_orchestrator(config, authorizer, job_submitter, audit_records):
    def _make(*, cfg: ExportApiConfig | None = None, audit_repository=None) -> ExportQueryOrchestrator:
        return ExportQueryOrchestrator(
            config=cfg or config,
            authorizer=authorizer,
            job_submitter=job_submitter,
            audit_repository=audit_repository or InMemoryJobAuditRepository(audit_records),
            id_factory=lambda: "req-fixed-1",
            clock=lambda: FIXED_NOW,
        )

    return _make
