from __future__ import annotations


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        http_status: int,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


class StageFailure(ApiError):
    """Terminal outcome of one pipeline stage; rendered as a failure response."""

    def __init__(self, *, stage: str, code: str, message: str, http_status: int) -> None:
        super().__init__(code=code, message=message, http_status=http_status)
        self.stage = stage


class ClaimDecodeError(ValueError):
    pass


class JobSubmissionError(RuntimeError):
    pass


class AuditWriteError(RuntimeError):
    pass
