from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(x.strip() for x in raw.split(",") if x.strip())


def _as_float(raw: str, default: float) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _postgres_dsn(env: Mapping[str, str]) -> str:
    explicit = env.get("POSTGRES_DSN", "").strip()
    if explicit:
        return explicit
    host = env.get("DB_HOST", "").strip()
    if not host:
        return ""
    return (
        f"host={host} port={env.get('DB_PORT', '5432').strip() or '5432'} "
        f"user={env.get('DB_USER', '').strip()} password={env.get('DB_PASSWORD', '').strip()} "
        f"dbname={env.get('DB_NAME', '').strip()} sslmode={env.get('DB_SSLMODE', 'disable').strip() or 'disable'}"
    )


@dataclass(frozen=True)
class ExportApiConfig:
    vault_url: str
    allowed_vault_ids: tuple[str, ...]
    auth_scheme: str
    token_claim: str
    destination_scheme: str
    authorization_timeout_s: float
    application_id: str
    execution_role_arn: str
    spark_submit_parameters: str
    entry_point: str
    log_uri: str
    secrets: str
    region: str
    postgres_dsn: str
    audit_backend: str
    log_level: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExportApiConfig":
        env = os.environ if environ is None else environ
        return cls(
            vault_url=env.get("VAULT_URL", "").strip().rstrip("/"),
            allowed_vault_ids=_split_csv(env.get("ALLOWED_VAULT_IDS", "")),
            auth_scheme=env.get("AUTH_SCHEME", "Bearer").strip() or "Bearer",
            token_claim=env.get("TOKEN_CLAIM", "jti").strip() or "jti",
            destination_scheme=env.get("DESTINATION_SCHEME", "s3").strip() or "s3",
            authorization_timeout_s=_as_float(env.get("AUTHORIZATION_TIMEOUT_SECONDS", "60"), 60.0),
            application_id=env.get("APPLICATION_ID", "").strip(),
            execution_role_arn=env.get("EXECUTION_ROLE_ARN", "").strip(),
            spark_submit_parameters=env.get("SPARK_SUBMIT_PARAMETERS", "").strip(),
            entry_point=env.get("ENTRYPOINT", "").strip(),
            log_uri=env.get("LOG_URI", "").strip(),
            secrets=env.get("SECRETS", "").strip(),
            region=env.get("REGION", "").strip(),
            postgres_dsn=_postgres_dsn(env),
            audit_backend=env.get("AUDIT_BACKEND", "postgres").strip().lower() or "postgres",
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
