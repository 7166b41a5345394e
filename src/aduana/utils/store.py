"""JSON-file repositories for simulations and the financial ledger.

The core never touches these directly: the CLI/TUI builds a store and hands
it to ``SettlementEngine``. Every read-modify-write holds a file lock and
writes atomically; a corrupt file is backed up instead of overwritten.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from filelock import FileLock

from aduana import config as _config
from aduana.config import BRT
from aduana.models.ledger import BankAccount, LedgerEntry
from aduana.models.simulation import SimulationInput
from aduana.services.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)


class SimulationStore(Protocol):
    def save(self, name: str, customer: str, sim: SimulationInput) -> dict[str, Any]: ...
    def list(self) -> list[dict[str, Any]]: ...
    def get(self, sim_id: str) -> dict[str, Any] | None: ...


class LedgerStore(Protocol):
    def list(self) -> list[LedgerEntry]: ...
    def get(self, entry_id: str) -> LedgerEntry | None: ...
    def list_accounts(self) -> list[BankAccount]: ...
    def save_many(
        self, entries: Sequence[LedgerEntry], accounts: Sequence[BankAccount] = ()
    ) -> None: ...


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


class _JsonFile:
    def __init__(self, path: Path, empty: Any) -> None:
        self.path = path
        self._empty = empty

    @contextmanager
    def locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(self.path.with_suffix(".lock")):
            yield

    def load(self) -> Any:
        if not self.path.exists():
            return copy.deepcopy(self._empty)
        try:
            return json.loads(self.path.read_text())
        except ValueError:
            _backup_corrupt(self.path)
            return copy.deepcopy(self._empty)

    def save(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, self.path)


class JsonSimulationStore:
    """Saved simulations: id, name, customer, created_at and the input data."""

    def __init__(self, path: Path | None = None) -> None:
        self._file = _JsonFile(path or _config.get_data_dir() / "simulations.json", [])

    def save(self, name: str, customer: str, sim: SimulationInput) -> dict[str, Any]:
        record = {
            "id": f"sim-{uuid.uuid4().hex[:10]}",
            "name": name,
            "customer": customer,
            "created_at": datetime.now(BRT).isoformat(timespec="seconds"),
            "data": sim.to_dict(),
        }
        with self._file.locked():
            records = self._file.load()
            records.append(record)
            self._file.save(records)
        return record

    def list(self) -> list[dict[str, Any]]:
        with self._file.locked():
            return self._file.load()

    def get(self, sim_id: str) -> dict[str, Any] | None:
        return next((r for r in self.list() if r.get("id") == sim_id), None)

    def load_input(self, sim_id: str) -> SimulationInput | None:
        """Re-validate a saved simulation through the input factory."""
        record = self.get(sim_id)
        if record is None:
            return None
        return SimulationInput.from_dict(record["data"])

    def delete(self, sim_id: str) -> bool:
        with self._file.locked():
            records = self._file.load()
            kept = [r for r in records if r.get("id") != sim_id]
            if len(kept) == len(records):
                return False
            self._file.save(kept)
            return True


class JsonLedgerStore:
    """Ledger entries and bank accounts in one JSON document.

    Entries and accounts carry the version they were read at. ``save_many``
    rejects a record whose stored version moved on (ConcurrentModificationError),
    then writes everything at once and bumps the versions.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._file = _JsonFile(
            path or _config.get_data_dir() / "ledger.json", {"entries": [], "accounts": []}
        )

    def list(self) -> list[LedgerEntry]:
        with self._file.locked():
            data = self._file.load()
        return [LedgerEntry.from_dict(e) for e in data["entries"]]

    def get(self, entry_id: str) -> LedgerEntry | None:
        return next((e for e in self.list() if e.id == entry_id), None)

    def list_accounts(self) -> list[BankAccount]:
        with self._file.locked():
            data = self._file.load()
        return [BankAccount.from_dict(a) for a in data["accounts"]]

    def get_account(self, account_id: int) -> BankAccount | None:
        return next((a for a in self.list_accounts() if a.id == account_id), None)

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        self.save_many([entry])
        return entry

    def save(self, entry: LedgerEntry) -> LedgerEntry:
        """Persist one entry; raises ConcurrentModificationError on a stale copy."""
        self.save_many([entry])
        return entry

    def save_account(self, account: BankAccount) -> BankAccount:
        self.save_many([], [account])
        return account

    def save_many(
        self, entries: Sequence[LedgerEntry], accounts: Sequence[BankAccount] = ()
    ) -> None:
        with self._file.locked():
            data = self._file.load()
            stored = {e["id"]: i for i, e in enumerate(data["entries"])}
            by_id = {a["id"]: i for i, a in enumerate(data["accounts"])}

            for entry in entries:
                idx = stored.get(entry.id)
                found = data["entries"][idx].get("version", 0) if idx is not None else 0
                if found != entry.version:
                    raise ConcurrentModificationError(entry.id, entry.version, found)

            for account in accounts:
                idx = by_id.get(account.id)
                found = data["accounts"][idx].get("version", 0) if idx is not None else 0
                if found != account.version:
                    raise ConcurrentModificationError(
                        str(account.id), account.version, found, kind="Saldo da conta"
                    )

            for entry in entries:
                record = entry.to_dict()
                record["version"] = entry.version + 1
                idx = stored.get(entry.id)
                if idx is None:
                    stored[entry.id] = len(data["entries"])
                    data["entries"].append(record)
                else:
                    data["entries"][idx] = record

            for account in accounts:
                record = account.to_dict()
                record["version"] = account.version + 1
                idx = by_id.get(account.id)
                if idx is None:
                    by_id[account.id] = len(data["accounts"])
                    data["accounts"].append(record)
                else:
                    data["accounts"][idx] = record

            self._file.save(data)

        for entry in entries:
            entry.version += 1
        for account in accounts:
            account.version += 1
