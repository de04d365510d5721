from __future__ import annotations

import base64
import json
import logging
import uuid
from typing import Any

from app.config import ExportApiConfig
from app.pipeline import ExportQueryOrchestrator, ExportRequest, build_orchestrator
from app.schemas import ExportQueryRequest, failure_body
from app.security import redact_sensitive

logger = logging.getLogger()

_orchestrator: ExportQueryOrchestrator | None = None


def _get_orchestrator() -> ExportQueryOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        cfg = ExportApiConfig.from_env()
        logger.setLevel(cfg.log_level)
        _orchestrator = build_orchestrator(cfg)
    return _orchestrator


def _header(headers: dict[str, Any], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted:
            return None if value is None else str(value)
    return None


def _raw_body(event: dict[str, Any]) -> str:
    raw = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(raw).decode("utf-8")
    return raw


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def to_export_request(event: dict[str, Any]) -> ExportRequest:
    """Map an API Gateway proxy event onto an ExportRequest.

    Raises ValueError (pydantic.ValidationError included) when the body is not a JSON object.
    """
    headers = event.get("headers") or {}
    request_context = event.get("requestContext") or {}
    logger.debug("%s-> Request headers: %s", request_context.get("requestId", "-"), redact_sensitive(headers))
    path_parameters = event.get("pathParameters") or {}
    raw = _raw_body(event)
    payload = ExportQueryRequest.model_validate_json(raw) if raw.strip() else ExportQueryRequest()
    client_ip = _header(headers, "CF-Connecting-IP") or (request_context.get("identity") or {}).get("sourceIp") or ""
    return ExportRequest(
        vault_id=str(path_parameters.get("vaultID") or ""),
        authorization=_header(headers, "Authorization"),
        query=payload.query,
        destination=payload.destination,
        region=payload.region,
        client_ip=client_ip,
    )


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    orchestrator = _get_orchestrator()
    try:
        request = to_export_request(event)
    except ValueError as exc:
        request_id = str(uuid.uuid4())
        logger.info("%s-> Rejected unparseable request body: %s", request_id, exc)
        return _response(400, failure_body(request_id=request_id, message="Invalid request body."))
    result = orchestrator.handle(request)
    return _response(result.status_code, result.body)
