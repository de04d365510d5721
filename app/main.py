from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import ExportApiConfig
from app.pipeline import ExportQueryOrchestrator, ExportRequest, build_orchestrator
from app.schemas import ExportQueryRequest, failure_body

logger = logging.getLogger(__name__)


def _client_ip(request: Request, cf_connecting_ip: str | None) -> str:
    if cf_connecting_ip:
        return cf_connecting_ip.strip()
    if request.client is not None:
        return request.client.host
    return ""


def create_app(orchestrator: ExportQueryOrchestrator | None = None) -> FastAPI:
    """Build the ASGI app; serve it with `uvicorn --factory app.main:create_app`.

    There is no module-level instance because wiring reads the environment and
    opens AWS and PostgreSQL clients.
    """
    app = FastAPI(title="Export Query API", version="0.1.0")
    if orchestrator is None:
        orchestrator = build_orchestrator(ExportApiConfig.from_env())
    app.state.orchestrator = orchestrator

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=failure_body(request_id=str(uuid.uuid4()), message="Invalid request body."),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        message = "resource not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=failure_body(request_id=str(uuid.uuid4()), message=message),
        )

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post("/v1/vaults/{vaultID}/export")
    def export_query(
        vaultID: str,
        request: Request,
        payload: ExportQueryRequest | None = None,
        authorization: str | None = Header(default=None),
        cf_connecting_ip: str | None = Header(default=None, alias="CF-Connecting-IP"),
    ):
        body = payload or ExportQueryRequest()
        result = request.app.state.orchestrator.handle(
            ExportRequest(
                vault_id=vaultID,
                authorization=authorization,
                query=body.query,
                destination=body.destination,
                region=body.region,
                client_ip=_client_ip(request, cf_connecting_ip),
            )
        )
        return JSONResponse(status_code=result.status_code, content=result.body)

    return app
