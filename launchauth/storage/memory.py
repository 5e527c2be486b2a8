from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from launchauth.logging import get_logger
from launchauth.storage.errors import StoreCommitError
from launchauth.storage.models import Account, StoreState


class MemoryAccountStore:
    """Account store with staged changes and atomic commit.

    Mutations (``put``, ``remove``, ``set_selected``, ``set_client_token``)
    land in a working copy that reads also see. ``commit`` publishes the whole
    working copy at once and, when ``fs_root`` is given, writes it to
    ``<fs_root>/state/accounts.json`` through a temp file and ``os.replace`` so
    a crash mid-write never leaves a partial record on disk. ``rollback``
    throws the working copy away.
    """

    def __init__(self, fs_root: str | None = None) -> None:
        self.logger = get_logger(__name__)
        self.fs_root = Path(fs_root) if fs_root else None
        # RLock so commit can call helpers that take the lock again
        self._data_lock = threading.RLock()
        self._committed = StoreState()
        if self.fs_root is not None:
            self.fs_root.mkdir(parents=True, exist_ok=True)
            loaded = self._load_state()
            if loaded is not None:
                self._committed = loaded
        self._pending = self._committed.copy()

    def _state_path(self) -> Path:
        state_dir = self.fs_root / "state"
        state_dir.mkdir(parents=True, exist_ok=True)
        return state_dir / "accounts.json"

    @staticmethod
    def _serialize_datetime(dt: datetime) -> str:
        return dt.isoformat()

    @staticmethod
    def _deserialize_datetime(raw: str) -> datetime:
        return datetime.fromisoformat(raw)

    # Reads

    def get(self, account_id: str) -> Optional[Account]:
        with self._data_lock:
            return self._pending.accounts.get(account_id)

    def list_accounts(self) -> List[Account]:
        with self._data_lock:
            return list(self._pending.accounts.values())

    def get_selected(self) -> Optional[Account]:
        with self._data_lock:
            selected = self._pending.selected_account
            if selected is None:
                return None
            return self._pending.accounts.get(selected)

    def get_client_token(self) -> Optional[str]:
        with self._data_lock:
            return self._pending.client_token

    # Staged writes

    def put(self, account: Account) -> Account:
        with self._data_lock:
            self._pending.accounts[account.id] = account
            return account

    def remove(self, account_id: str) -> bool:
        with self._data_lock:
            removed = self._pending.accounts.pop(account_id, None)
            if removed is None:
                return False
            if self._pending.selected_account == account_id:
                # Selection must always point at an existing account
                remaining = next(iter(self._pending.accounts), None)
                self._pending.selected_account = remaining
            return True

    def set_selected(self, account_id: Optional[str]) -> None:
        with self._data_lock:
            if account_id is not None and account_id not in self._pending.accounts:
                raise KeyError(account_id)
            self._pending.selected_account = account_id

    def set_client_token(self, token: str) -> None:
        with self._data_lock:
            current = self._pending.client_token
            if current is not None and current != token:
                raise ValueError("client token is already set for this store")
            self._pending.client_token = token

    # Unit of work

    def commit(self) -> None:
        with self._data_lock:
            snapshot = self._pending.copy()
            if self.fs_root is not None:
                try:
                    self._persist_state(snapshot)
                except OSError as exc:
                    self.logger.error(
                        "account_store_commit_failed",
                        error=str(exc),
                        path=str(self._state_path()),
                    )
                    raise StoreCommitError(
                        "Unable to persist account store", {"error": str(exc)}
                    ) from exc
            self._committed = snapshot

    def rollback(self) -> None:
        with self._data_lock:
            self._pending = self._committed.copy()

    # Persistence

    def _serialize_account(self, account: Account) -> Dict[str, Any]:
        return {
            "id": account.id,
            "display_name": account.display_name,
            "username": account.username,
            "access_token": account.access_token,
            "client_token": account.client_token,
            "refresh_token": account.refresh_token,
            "added_at": self._serialize_datetime(account.added_at),
            "account_type": account.account_type,
        }

    def _deserialize_account(self, data: Dict[str, Any]) -> Account:
        return Account(
            id=data["id"],
            display_name=data.get("display_name", ""),
            username=data.get("username", ""),
            access_token=data["access_token"],
            client_token=data.get("client_token", ""),
            refresh_token=data.get("refresh_token"),
            added_at=self._deserialize_datetime(data["added_at"]),
            account_type=data.get("account_type", "mojang"),
        )

    def _persist_state(self, state: StoreState) -> None:
        payload = {
            "client_token": state.client_token,
            "selected_account": state.selected_account,
            "accounts": [self._serialize_account(a) for a in state.accounts.values()],
        }
        path = self._state_path()
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=".accounts_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def _load_state(self) -> Optional[StoreState]:
        path = self._state_path()
        # Use try-except instead of exists() to avoid TOCTOU race condition
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        accounts = {
            a["id"]: self._deserialize_account(a) for a in data.get("accounts", [])
        }
        selected = data.get("selected_account")
        if selected is not None and selected not in accounts:
            self.logger.warning("account_store_dangling_selection", selected=selected)
            selected = next(iter(accounts), None)
        return StoreState(
            accounts=accounts,
            selected_account=selected,
            client_token=data.get("client_token"),
        )


__all__ = ["MemoryAccountStore"]
