from app.repositories.job_audit import InMemoryJobAuditRepository, JobAuditRecord, PostgresJobAuditRepository

__all__ = [
    "InMemoryJobAuditRepository",
    "JobAuditRecord",
    "PostgresJobAuditRepository",
]
