from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from app.authorization_client import AuthorizationOutcome, VaultAuthorizationClient
from app.config import ExportApiConfig
from app.db.postgres import PostgresConnectionProvider
from app.errors import AuditWriteError, ClaimDecodeError, JobSubmissionError, StageFailure
from app.job_submitter import EmrServerlessJobSubmitter, JobSubmitter
from app.repositories.job_audit import InMemoryJobAuditRepository, JobAuditRecord, PostgresJobAuditRepository
from app.schemas import failure_body, success_body
from app.security import credential_from_header, extract_unverified_claim
from app.validators import is_allowed_vault, is_supported_auth_scheme, is_valid_destination

logger = logging.getLogger(__name__)

JOB_STATUS_INITIATED = "INITIATED"


class Authorizer(Protocol):
    def authorize(self, *, credential: str, query: str, vault_id: str, request_id: str) -> AuthorizationOutcome: ...


class AuditRepository(Protocol):
    def append(self, *, record: JobAuditRecord) -> JobAuditRecord: ...


@dataclass(frozen=True)
class ExportRequest:
    vault_id: str
    authorization: str | None
    query: str
    destination: str
    region: str | None = None
    client_ip: str = ""


@dataclass(frozen=True)
class ExportResult:
    status_code: int
    body: dict[str, Any]
    stage: str
    failed_stage: str | None = None


@dataclass
class _Run:
    request_id: str
    request: ExportRequest
    stage: str = "validating_destination"
    claim_id: str = ""
    outcome: AuthorizationOutcome | None = None
    job_id: str = ""

    def authorized_outcome(self) -> AuthorizationOutcome:
        if self.outcome is None:
            raise RuntimeError(f"{self.stage} reached before the authorizing stage")
        return self.outcome


class ExportQueryOrchestrator:
    """Runs the export pipeline for one request.

    Stages run strictly in order and each either returns (continue) or raises
    StageFailure (terminal). Every external collaborator is called at most once.
    """

    def __init__(
        self,
        *,
        config: ExportApiConfig,
        authorizer: Authorizer,
        job_submitter: JobSubmitter,
        audit_repository: AuditRepository,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._cfg = config
        self._authorizer = authorizer
        self._job_submitter = job_submitter
        self._audit = audit_repository
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._stages: list[tuple[str, Callable[[_Run], None]]] = [
            ("validating_destination", self._validate_destination),
            ("validating_auth_scheme", self._validate_auth_scheme),
            ("extracting_claim", self._extract_claim),
            ("validating_vault", self._validate_vault),
            ("authorizing", self._authorize),
            ("submitting_job", self._submit_job),
            ("logging_audit", self._log_audit),
        ]

    def handle(self, request: ExportRequest) -> ExportResult:
        run = _Run(request_id=self._id_factory(), request=request)
        logger.info("%s-> Initiated with id: %s", run.request_id, run.request_id)
        if request.client_ip:
            logger.info("%s-> Client IP address: %s", run.request_id, request.client_ip)
        for stage, step in self._stages:
            run.stage = stage
            try:
                step(run)
            except StageFailure as exc:
                logger.info(
                    "%s-> Failed at stage=%s status=%s message=%s",
                    run.request_id,
                    exc.stage,
                    exc.http_status,
                    exc.message,
                )
                return ExportResult(
                    status_code=exc.http_status,
                    body=failure_body(request_id=run.request_id, message=exc.message),
                    stage="failed",
                    failed_stage=exc.stage,
                )
        run.stage = "succeeded"
        outcome = run.authorized_outcome()
        return ExportResult(
            status_code=200,
            body=success_body(
                request_id=run.request_id,
                job_id=run.job_id,
                correlation_id=outcome.correlation_id,
                job_status=JOB_STATUS_INITIATED,
            ),
            stage=run.stage,
        )

    def _validate_destination(self, run: _Run) -> None:
        scheme = self._cfg.destination_scheme
        if not is_valid_destination(run.request.destination, scheme=scheme):
            raise StageFailure(
                stage=run.stage,
                code="INVALID_DESTINATION",
                message=f"Invalid {scheme} destination path.",
                http_status=400,
            )

    def _validate_auth_scheme(self, run: _Run) -> None:
        if not is_supported_auth_scheme(run.request.authorization, scheme=self._cfg.auth_scheme):
            raise StageFailure(
                stage=run.stage,
                code="AUTH_SCHEME_UNSUPPORTED",
                message="Auth Scheme not supported",
                http_status=401,
            )

    def _extract_claim(self, run: _Run) -> None:
        try:
            run.claim_id = extract_unverified_claim(run.request.authorization, claim=self._cfg.token_claim)
        except ClaimDecodeError as exc:
            raise StageFailure(stage=run.stage, code="TOKEN_DECODE_FAILED", message=str(exc), http_status=403) from exc

    def _validate_vault(self, run: _Run) -> None:
        if not is_allowed_vault(run.request.vault_id, self._cfg.allowed_vault_ids):
            raise StageFailure(stage=run.stage, code="VAULT_NOT_ALLOWED", message="Invalid Vault ID", http_status=403)

    def _authorize(self, run: _Run) -> None:
        outcome = self._authorizer.authorize(
            credential=credential_from_header(run.request.authorization),
            query=run.request.query,
            vault_id=run.request.vault_id,
            request_id=run.request_id,
        )
        run.outcome = outcome
        if outcome.error is not None:
            raise StageFailure(
                stage=run.stage,
                code="AUTHORIZATION_ERROR",
                message=outcome.error,
                http_status=outcome.status_code,
            )
        if outcome.status_code != 200:
            raise StageFailure(
                stage=run.stage,
                code="AUTHORIZATION_REJECTED",
                message=outcome.body_text,
                http_status=outcome.status_code,
            )
        logger.info("%s-> Successfully authorized correlation_id=%s", run.request_id, outcome.correlation_id)

    def _submit_job(self, run: _Run) -> None:
        req = run.request
        logger.info("%s-> Triggering Spark job destination=%s", run.request_id, req.destination)
        try:
            run.job_id = self._job_submitter.submit(
                query=req.query,
                destination=req.destination,
                request_id=run.request_id,
                region=req.region,
            )
        except JobSubmissionError as exc:
            raise StageFailure(
                stage=run.stage,
                code="JOB_SUBMISSION_FAILED",
                message=f"Failed to trigger Spark job with error: {exc}",
                http_status=500,
            ) from exc

    def _log_audit(self, run: _Run) -> None:
        req = run.request
        outcome = run.authorized_outcome()
        record = JobAuditRecord(
            id=run.request_id,
            job_id=run.job_id,
            job_status=JOB_STATUS_INITIATED,
            request_id=outcome.correlation_id,
            query=req.query,
            destination=req.destination,
            cross_region=bool(req.region) and req.region != self._cfg.region,
            claim_id=run.claim_id,
            client_ip=req.client_ip,
            created_at=self._clock(),
        )
        logger.info("%s-> Inserting audit record job_id=%s", run.request_id, run.job_id)
        try:
            self._audit.append(record=record)
        except AuditWriteError as exc:
            logger.warning("%s-> Failed to insert audit record job_id=%s: %s", run.request_id, run.job_id, exc)
            raise StageFailure(
                stage=run.stage,
                code="AUDIT_WRITE_FAILED",
                message=f"Failed to log job with error: {exc}",
                http_status=500,
            ) from exc


def build_orchestrator(cfg: ExportApiConfig) -> ExportQueryOrchestrator:
    audit_repository: AuditRepository
    if cfg.audit_backend == "memory":
        audit_repository = InMemoryJobAuditRepository()
    else:
        audit_repository = PostgresJobAuditRepository(provider=PostgresConnectionProvider(cfg.postgres_dsn))
    return ExportQueryOrchestrator(
        config=cfg,
        authorizer=VaultAuthorizationClient.from_config(cfg),
        job_submitter=EmrServerlessJobSubmitter.from_config(cfg),
        audit_repository=audit_repository,
    )
