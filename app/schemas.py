from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ExportQueryRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = ""
    destination: str = ""
    region: str | None = None


class SuccessResponse(BaseModel):
    id: str
    jobId: str
    requestId: str
    jobStatus: str


class FailureResponse(BaseModel):
    id: str
    message: str


def success_body(*, request_id: str, job_id: str, correlation_id: str, job_status: str) -> dict[str, Any]:
    return SuccessResponse(id=request_id, jobId=job_id, requestId=correlation_id, jobStatus=job_status).model_dump()


def failure_body(*, request_id: str, message: str) -> dict[str, Any]:
    return FailureResponse(id=request_id, message=message).model_dump()
