"""
Exception hierarchy for the duplicate detection and merge services.

The API maps each class to a status code; see tracker.api.main.
"""


class TrackerError(Exception):
    """Base exception for all domain errors"""
    pass


class NotFoundError(TrackerError):
    """Requested resource is missing or not owned by the caller"""

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class ValidationError(TrackerError):
    """Request is well-formed but cannot be applied"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ConflictError(TrackerError):
    """Resource is not in a state that allows the operation"""
    pass


class MergeFailedError(TrackerError):
    """Store failure during a merge; the transaction was rolled back.

    No changes were applied, so the caller may retry the same request.
    """

    retryable = True

    def __init__(self, master_job_id: str, cause: Exception):
        self.master_job_id = master_job_id
        self.cause = cause
        super().__init__(f"merge into {master_job_id} failed, no changes applied: {cause}")
