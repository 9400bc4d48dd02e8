"""Custom exceptions for the federate package."""

from typing import Optional


class FederateException(Exception):
    """Base exception for all federation errors."""

    pass


class ConfigValidationError(FederateException):
    """Federation configuration failed a structural or referential check.

    The rendered message is ``[<component>] <message>`` so callers (and the job
    driver that reports it back to the platform) see which validator rejected
    the configuration.
    """

    def __init__(self, component: str, message: str):
        self.component = component
        self.message = message
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        return f"[{self.component}] {self.message}"


class FederationJobError(FederateException):
    """A federation job could not run to completion."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        self.message = message
        self.job_id = job_id
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format job error with the job id when known."""
        if self.job_id:
            return f"Federation job {self.job_id} failed: {self.message}"
        return self.message
