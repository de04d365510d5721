from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.config import ExportApiConfig
from app.errors import JobSubmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SparkJobSettings:
    application_id: str
    execution_role_arn: str
    entry_point: str
    spark_submit_parameters: str
    log_uri: str
    secrets: str
    region: str


class JobSubmitter:
    def submit(self, *, query: str, destination: str, request_id: str, region: str | None = None) -> str:
        raise NotImplementedError


class EmrServerlessJobSubmitter(JobSubmitter):
    def __init__(self, *, settings: SparkJobSettings, client: Any | None = None) -> None:
        self._settings = settings
        if client is None:
            try:
                import boto3  # type: ignore
            except Exception as exc:  # pragma: no cover - optional dependency
                raise RuntimeError("boto3 is required for the emr-serverless job submitter") from exc
            session = boto3.session.Session(region_name=settings.region or None)
            client = session.client("emr-serverless")
        self._client = client

    @classmethod
    def from_config(cls, cfg: ExportApiConfig, *, client: Any | None = None) -> "EmrServerlessJobSubmitter":
        settings = SparkJobSettings(
            application_id=cfg.application_id,
            execution_role_arn=cfg.execution_role_arn,
            entry_point=cfg.entry_point,
            spark_submit_parameters=cfg.spark_submit_parameters,
            log_uri=cfg.log_uri,
            secrets=cfg.secrets,
            region=cfg.region,
        )
        return cls(settings=settings, client=client)

    def build_job_run(self, *, query: str, destination: str, request_id: str, region: str | None = None) -> dict[str, Any]:
        s = self._settings
        spark_submit: dict[str, Any] = {
            "entryPoint": s.entry_point,
            "entryPointArguments": [query, destination, request_id, s.secrets, region or s.region],
        }
        if s.spark_submit_parameters:
            spark_submit["sparkSubmitParameters"] = s.spark_submit_parameters
        params: dict[str, Any] = {
            "applicationId": s.application_id,
            "clientToken": request_id,
            "executionRoleArn": s.execution_role_arn,
            "jobDriver": {"sparkSubmit": spark_submit},
        }
        if s.log_uri:
            params["configurationOverrides"] = {
                "monitoringConfiguration": {"s3MonitoringConfiguration": {"logUri": s.log_uri}},
            }
        return params

    def submit(self, *, query: str, destination: str, request_id: str, region: str | None = None) -> str:
        params = self.build_job_run(query=query, destination=destination, request_id=request_id, region=region)
        logger.info("%s-> Submitting EMR Serverless job application_id=%s", request_id, self._settings.application_id)
        try:
            response = self._client.start_job_run(**params)
        except Exception as exc:
            logger.warning("%s-> Failed to start job run: %s", request_id, exc)
            raise JobSubmissionError(str(exc)) from exc
        job_run_id = str(response.get("jobRunId") or "")
        if not job_run_id:
            raise JobSubmissionError("start_job_run returned no jobRunId")
        logger.info("%s-> Submitted job run %s", request_id, job_run_id)
        return job_run_id
