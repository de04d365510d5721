from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from app.db.postgres import PostgresConnectionProvider
from app.errors import AuditWriteError


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


@dataclass(frozen=True)
class JobAuditRecord:
    id: str
    job_id: str
    job_status: str
    request_id: str
    query: str
    destination: str
    cross_region: bool
    claim_id: str
    client_ip: str
    created_at: datetime


class InMemoryJobAuditRepository:
    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self._records = records if records is not None else []

    def append(self, *, record: JobAuditRecord) -> JobAuditRecord:
        self._records.append(asdict(record))
        return record


class PostgresJobAuditRepository:
    def __init__(self, *, provider: PostgresConnectionProvider, table_name: str = "emr_job_details") -> None:
        self._provider = provider
        self._table_name = _validate_identifier(table_name)

    def append(self, *, record: JobAuditRecord) -> JobAuditRecord:
        sql = f"""
            INSERT INTO "{self._table_name}" (
                "id", "jobid", "jobstatus", "requestid", "query", "destination",
                "crossregion", "claimid", "clientip", "createdat"
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        def _op(conn: Any) -> JobAuditRecord:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        record.id,
                        record.job_id,
                        record.job_status,
                        record.request_id,
                        record.query,
                        record.destination,
                        record.cross_region,
                        record.claim_id,
                        record.client_ip,
                        record.created_at,
                    ),
                )
            return record

        try:
            return self._provider.run(_op)
        except Exception as exc:
            raise AuditWriteError(str(exc)) from exc
