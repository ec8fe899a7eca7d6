"""Exception hierarchy for the Pathmode MCP server."""

from __future__ import annotations

from typing import Iterable, Optional


class PathmodeError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(PathmodeError):
    """No usable cloud configuration could be loaded."""


class PathmodeAPIError(PathmodeError):
    """The Pathmode API answered with a non-success status."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API error ({status_code}): {detail}")


class PathmodeConnectionError(PathmodeError):
    """The Pathmode API could not be reached."""


class IntentValidationError(PathmodeError, ValueError):
    """An intent payload does not match the expected shape."""

    def __init__(self, message: str, intent_id: Optional[str] = None):
        self.intent_id = intent_id
        super().__init__(message)


class DuplicateIntentError(IntentValidationError):
    """The same intent id occurs more than once in one intent set."""

    def __init__(self, duplicate_ids: Iterable[str]):
        self.duplicate_ids = sorted(set(duplicate_ids))
        super().__init__(
            f"Duplicate intent ids: {', '.join(self.duplicate_ids)}"
        )
