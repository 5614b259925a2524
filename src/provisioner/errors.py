"""Error taxonomy for the vault workflow.

All failures raised by the Resource Client and the workflow derive from
WorkflowError so the top-level boundary can map them to exit codes.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for workflow failures."""

    pass


class AuthenticationError(WorkflowError):
    """Credentials are missing, malformed, invalid or expired."""

    pass


class ResourceOperationError(WorkflowError):
    """A control-plane call was rejected by Azure or did not complete in time."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.error_code = error_code


class NotProvisionedError(WorkflowError):
    """Cleanup was requested but no resource group was ever created.

    Not a failure: callers treat it as "nothing to clean up".
    """

    pass
