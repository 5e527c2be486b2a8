from __future__ import annotations

from typing import Any, Dict, Optional


class StoreCommitError(Exception):
    """Raised when staged account changes could not be committed.

    The committed state is left exactly as it was before the commit attempt.
    """

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


__all__ = ["StoreCommitError"]
