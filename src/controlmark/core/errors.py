"""Workflow error taxonomy.

Each error carries the short title and descriptive message shown to the
user, and whether retrying the same action can succeed.
"""

from __future__ import annotations

from typing import Optional


class ControlmarkError(Exception):
    title = "Error"
    default_message = "Something went wrong."
    retryable = False

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        title: Optional[str] = None,
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        if title is not None:
            self.title = title
        if retryable is not None:
            self.retryable = retryable
        self.status_code = status_code
        super().__init__(self.message)


class CatalogUnavailable(ControlmarkError):
    title = "Controls Unavailable"
    default_message = "Failed to load controls."
    retryable = True


class ValidationError(ControlmarkError):
    title = "Invalid Input"
    default_message = "Please check the highlighted fields."

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None, **kwargs):
        self.field = field
        super().__init__(message, **kwargs)


class AuthExpired(ControlmarkError):
    title = "Session Expired"
    default_message = "Please log in again."


class SaveFailed(ControlmarkError):
    default_message = "Failed to save configuration."


class ReportGenerationFailed(ControlmarkError):
    default_message = "Failed to generate report."


class ReportDownloadFailed(ControlmarkError):
    default_message = "Failed to download report."
    retryable = True


class EmptyArtifact(ControlmarkError):
    default_message = "The report file is empty. Please try generating the report again."


class WrongContentType(ControlmarkError):
    default_message = "Invalid response format. Expected PDF."
