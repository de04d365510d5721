from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from app.config import ExportApiConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationOutcome:
    correlation_id: str
    status_code: int
    body_text: str
    error: str | None = None

    @property
    def authorized(self) -> bool:
        return self.error is None and self.status_code == 200


class VaultAuthorizationClient:
    """Delegates the record-level authorization decision to the vault query API.

    The vault evaluates the raw query against the caller's credential. A 200
    means the caller may read what the query selects; any other status is the
    vault's own verdict and is handed back unchanged.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth_scheme: str = "Bearer",
        timeout_s: float = 60.0,
        session: Any | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_scheme = auth_scheme
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: ExportApiConfig) -> "VaultAuthorizationClient":
        return cls(
            base_url=cfg.vault_url,
            auth_scheme=cfg.auth_scheme,
            timeout_s=cfg.authorization_timeout_s,
        )

    def authorize(self, *, credential: str, query: str, vault_id: str, request_id: str) -> AuthorizationOutcome:
        logger.info("%s-> Initiating vault authorization", request_id)
        if not query:
            logger.info("%s-> Got invalid query: %r", request_id, query)
            return AuthorizationOutcome(correlation_id="", status_code=401, body_text="", error="Invalid Query")

        url = f"{self._base_url}/v1/vaults/{vault_id}/query"
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"{self._auth_scheme} {credential}",
        }
        try:
            response = self._session.post(url, json={"query": query}, headers=headers, timeout=self._timeout_s)
        except requests.exceptions.RequestException as exc:
            logger.warning("%s-> Vault authorization request failed: %s", request_id, exc)
            return AuthorizationOutcome(correlation_id="", status_code=500, body_text="", error=str(exc))

        outcome = AuthorizationOutcome(
            correlation_id=response.headers.get("x-request-id", ""),
            status_code=response.status_code,
            body_text=response.text,
        )
        if response.status_code != 200:
            logger.info(
                "%s-> Vault rejected query status_code=%s body=%s",
                request_id,
                response.status_code,
                response.text[:200],
            )
        return outcome
