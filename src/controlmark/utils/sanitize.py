"""Text sanitization: credential redaction and safe filenames."""

from __future__ import annotations

import os
import re


def sanitize_error(message: str) -> str:
    """Sanitize error messages to prevent token and path leakage."""
    if not message:
        return message

    sanitized = message
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)
    sanitized = re.sub(r"([?&](?:token|access_token)=)[^&\s]+", r"\1[REDACTED]", sanitized)

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home:
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized


def report_filename(device_name: str, extension: str = ".pdf") -> str:
    """Deterministic report filename for a device or configuration name.

    Runs of non-alphanumeric characters become a single underscore.
    """
    stem = re.sub(r"[^A-Za-z0-9]+", "_", device_name or "").strip("_") or "report"
    if not extension.startswith("."):
        extension = "." + extension
    return f"{stem}_report{extension}"
