"""Persistence of vault records.

Two interchangeable backends keyed by the vault address (case-insensitive):
`FileVaultStore` writes one JSON file per vault, `MemoryVaultStore` keeps records
for the lifetime of the process. `resolve_store` picks one from the environment.

There is no locking. Writers that pass `expected_version` get optimistic concurrency
control; writers that don't get last-write-wins.
"""

import os
import sys
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from inheritance_vault.constants import ENV_STORAGE, ENV_STORAGE_DIR, STORAGE_DIR_NAME, STORAGE_KEY_PREFIX
from inheritance_vault.errors import ConcurrentModificationError, StorageError
from inheritance_vault.models import StoredDelegation, VaultStorage
from inheritance_vault.parsing import dumps_vault_storage, loads_vault_storage


def storage_key(vault_address: str) -> str:
    """Backend-independent key for a vault."""
    return vault_address.strip().lower()


class VaultStore(ABC):
    """Keyed store of VaultStorage records."""

    @abstractmethod
    def _read(self, key: str) -> str | None: ...

    @abstractmethod
    def _write(self, key: str, text: str) -> None: ...

    @abstractmethod
    def _remove(self, key: str) -> bool: ...

    @abstractmethod
    def list(self) -> list[str]:
        """List stored vault addresses (lowercase)."""

    def load(self, vault_address: str) -> VaultStorage | None:
        """Load a record, or None if the vault is unknown. Corrupt records raise StorageError."""
        text = self._read(storage_key(vault_address))
        if text is None:
            return None
        try:
            return loads_vault_storage(text)
        except (ValueError, KeyError, TypeError) as ex:
            raise StorageError(f"Failed to parse vault data for {vault_address}: {ex}") from ex

    def save(self, vault_address: str, record: VaultStorage, *, expected_version: int | None = None) -> int:
        """
        Persist a record and return its new version.

        With `expected_version`, the write is rejected if the stored record's version differs
        (someone else saved in between).
        """
        key = storage_key(vault_address)
        if expected_version is not None:
            current = self.load(vault_address)
            current_version = current.version if current is not None else 0
            if current_version != expected_version:
                raise ConcurrentModificationError(
                    f"Vault {vault_address} changed since it was loaded "
                    f"(stored version {current_version}, expected {expected_version})"
                )
        record.version += 1
        try:
            self._write(key, dumps_vault_storage(record))
        except OSError as ex:
            record.version -= 1
            raise StorageError(f"Failed to save vault data for {vault_address}: {ex}") from ex
        return record.version

    def delete(self, vault_address: str) -> bool:
        """Remove a record. Returns False if there was nothing to remove."""
        removed = self._remove(storage_key(vault_address))
        if removed:
            print(f"🗑️  Vault data deleted for {vault_address}", file=sys.stderr)
        return removed

    def export(self, vault_address: str) -> str | None:
        """Return a record as JSON text for backup or sharing."""
        record = self.load(vault_address)
        if record is None:
            return None
        return dumps_vault_storage(record)

    def import_(self, json_text: str) -> str:
        """Store a record from exported JSON text and return its vault address."""
        try:
            record = loads_vault_storage(json_text)
        except (ValueError, KeyError, TypeError) as ex:
            raise StorageError(f"Invalid vault data: {ex}") from ex
        if not record.config.vault_address:
            raise StorageError("Invalid vault data: missing vaultAddress")
        self._write(storage_key(record.config.vault_address), dumps_vault_storage(record))
        return record.config.vault_address


def get_storage_dir() -> Path:
    """Storage directory: VAULT_STORAGE_DIR, else XDG_DATA_HOME, else ~/.local/share."""
    override = os.getenv(ENV_STORAGE_DIR)
    if override:
        return Path(override)
    data_home = os.getenv("XDG_DATA_HOME")
    if data_home:
        base = Path(data_home)
    else:
        base = Path.home() / ".local" / "share"
    return base / STORAGE_DIR_NAME


class FileVaultStore(VaultStore):
    """One `<address>.json` file per vault."""

    def __init__(self, directory: Path | str | None = None):
        self.directory = Path(directory) if directory is not None else get_storage_dir()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as ex:
            raise StorageError(f"Failed to read {path}: {ex}") from ex

    def _write(self, key: str, text: str) -> None:
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            print(f"📁 Created vault storage directory: {self.directory}", file=sys.stderr)
        # Write to a sibling temp file and rename so readers never see a partial record.
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _remove(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


class MemoryVaultStore(VaultStore):
    """Process-local store. Records are held serialized, so loads never alias saved objects."""

    def __init__(self):
        self._items: dict[str, str] = {}

    def _read(self, key: str) -> str | None:
        return self._items.get(f"{STORAGE_KEY_PREFIX}{key}")

    def _write(self, key: str, text: str) -> None:
        self._items[f"{STORAGE_KEY_PREFIX}{key}"] = text

    def _remove(self, key: str) -> bool:
        return self._items.pop(f"{STORAGE_KEY_PREFIX}{key}", None) is not None

    def list(self) -> list[str]:
        return sorted(k[len(STORAGE_KEY_PREFIX) :] for k in self._items if k.startswith(STORAGE_KEY_PREFIX))


def resolve_store(kind: str | None = None) -> VaultStore:
    """Pick a backend: `kind`, else VAULT_STORAGE, else the file store."""
    kind = (kind or os.getenv(ENV_STORAGE) or "file").strip().lower()
    if kind == "file":
        return FileVaultStore()
    if kind == "memory":
        return MemoryVaultStore()
    raise ValueError(f"Unknown storage backend: {kind} (expected 'file' or 'memory')")


def find_beneficiary(record: VaultStorage, address: str):
    """Beneficiary entry for `address`, or None."""
    wanted = address.lower()
    return next((b for b in record.beneficiaries if b.address.lower() == wanted), None)


def current_delegations(record: VaultStorage) -> list[StoredDelegation]:
    """Delegations of the latest epoch, disabled or not."""
    epoch = record.current_epoch
    return [d for d in record.delegations if d.epoch == epoch]


def active_delegations(record: VaultStorage, *, include_history: bool = False) -> list[StoredDelegation]:
    """Delegations not marked disabled. Only the current epoch unless `include_history`."""
    pool = record.delegations if include_history else current_delegations(record)
    return [d for d in pool if not d.is_disabled]


def pending_disables(record: VaultStorage) -> list[StoredDelegation]:
    """
    Every delegation a check-in has to disable: all epochs, not yet disabled, not redeemed.

    Older epochs only show up here when an earlier disable failed.
    """
    redeemed = {b.delegation_hash.lower() for b in record.beneficiaries if b.has_claimed and b.delegation_hash}
    return [d for d in active_delegations(record, include_history=True) if d.hash.lower() not in redeemed]


def beneficiary_delegation(record: VaultStorage, beneficiary_address: str) -> StoredDelegation | None:
    """Newest current-epoch delegation issued to a beneficiary, preferring ones still enabled."""
    wanted = beneficiary_address.lower()
    matches = [d for d in current_delegations(record) if d.beneficiary_address.lower() == wanted]
    if not matches:
        return None
    enabled = [d for d in matches if not d.is_disabled]
    return (enabled or matches)[-1]


def mark_delegation_disabled(record: VaultStorage, delegation_hash: str) -> bool:
    """Flag every stored copy of a delegation as disabled. Returns False if the hash is unknown."""
    wanted = delegation_hash.lower()
    found = False
    for d in record.delegations:
        if d.hash.lower() == wanted:
            d.is_disabled = True
            found = True
    return found
