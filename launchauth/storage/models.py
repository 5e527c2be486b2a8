from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Account:
    id: str
    display_name: str
    username: str
    access_token: str
    client_token: str
    refresh_token: Optional[str] = None
    added_at: datetime = field(default_factory=_utcnow)
    account_type: str = "mojang"

    def with_access_token(self, access_token: str) -> "Account":
        """Copy of this account carrying a renewed access token (same id)."""
        return replace(self, access_token=access_token)


@dataclass
class StoreState:
    """Everything an account store persists, committed as one unit."""

    accounts: Dict[str, Account] = field(default_factory=dict)
    selected_account: Optional[str] = None
    client_token: Optional[str] = None

    def copy(self) -> "StoreState":
        return StoreState(
            accounts=dict(self.accounts),
            selected_account=self.selected_account,
            client_token=self.client_token,
        )
