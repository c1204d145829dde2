"""
Volt Ledger - Persistent Storage

Saves and restores a platform snapshot (``StakingPlatform.to_dict()``) with:
- Atomic writes (temp file + rename)
- SHA-256 checksum verification
- Automatic backups on save
- Recovery from the newest valid backup when the main file is corrupted
"""

import hashlib
import json
import logging
import os
import shutil
import time
from datetime import datetime
from threading import Lock
from typing import List, Optional, Tuple

from .ledger_exceptions import CorruptedDataError, StorageError

logger = logging.getLogger(__name__)

STORAGE_FORMAT_VERSION = "1.0"


class LedgerStorage:
    """
    Ledger snapshot storage with integrity checks and backups.

    Layout under ``data_dir``::

        ledger.json             {"metadata": {...}, "ledger": {...}}
        ledger_metadata.json    copy of the metadata for quick inspection
        backups/ledger_backup_<timestamp>.json
    """

    LEDGER_FILE = "ledger.json"
    METADATA_FILE = "ledger_metadata.json"
    BACKUP_PREFIX = "ledger_backup_"

    def __init__(self, data_dir: str, max_backups: int = 10):
        self.data_dir = data_dir
        self.ledger_file = os.path.join(data_dir, self.LEDGER_FILE)
        self.metadata_file = os.path.join(data_dir, self.METADATA_FILE)
        self.backup_dir = os.path.join(data_dir, "backups")
        self.max_backups = max_backups

        os.makedirs(self.data_dir, exist_ok=True)
        os.makedirs(self.backup_dir, exist_ok=True)

        self.lock = Lock()

    @staticmethod
    def _serialize(ledger_data: dict) -> str:
        return json.dumps(ledger_data, indent=2, sort_keys=True)

    @staticmethod
    def _calculate_checksum(data: str) -> str:
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    def _verify_checksum(self, data: str, expected_checksum: str) -> bool:
        return self._calculate_checksum(data) == expected_checksum

    def save_to_disk(self, ledger_data: dict, create_backup: bool = True) -> Tuple[bool, str]:
        """
        Save a ledger snapshot with an atomic write.

        Returns:
            tuple: (success, message)
        """
        with self.lock:
            try:
                json_data = self._serialize(ledger_data)
                checksum = self._calculate_checksum(json_data)

                metadata = {
                    "timestamp": time.time(),
                    "accounts": len(ledger_data.get("ledger", {}).get("accounts", {})),
                    "checksum": checksum,
                    "version": STORAGE_FORMAT_VERSION,
                }
                package_json = json.dumps(
                    {"metadata": metadata, "ledger": ledger_data}, indent=2, sort_keys=True
                )

                if create_backup and os.path.exists(self.ledger_file):
                    self._create_backup()

                temp_file = self.ledger_file + ".tmp"
                with open(temp_file, "w") as f:
                    f.write(package_json)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_file, self.ledger_file)

                with open(self.metadata_file, "w") as f:
                    json.dump(metadata, f, indent=2)

                logger.info(
                    "Ledger snapshot saved",
                    extra={
                        "event": "storage.saved",
                        "accounts": metadata["accounts"],
                        "checksum": checksum[:16],
                    },
                )
                return True, f"Ledger saved successfully (checksum: {checksum[:8]}...)"

            except (StorageError, OSError, TypeError, ValueError) as e:
                logger.error(
                    "Failed to save ledger to disk",
                    extra={
                        "event": "storage.save_failed",
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                return False, f"Failed to save ledger: {str(e)}"

    def _read_package(self, path: str) -> dict:
        """Read and verify one stored package; raise CorruptedDataError on any defect."""
        try:
            with open(path, "r") as f:
                package = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptedDataError(
                f"Invalid JSON in {os.path.basename(path)}: {e}",
                details={"path": path},
            ) from e

        if not isinstance(package, dict) or "ledger" not in package:
            raise CorruptedDataError(
                f"{os.path.basename(path)} is not a ledger package",
                details={"path": path},
            )

        ledger_data = package["ledger"]
        expected_checksum = package.get("metadata", {}).get("checksum")
        if not expected_checksum or not self._verify_checksum(
            self._serialize(ledger_data), expected_checksum
        ):
            raise CorruptedDataError(
                f"Checksum verification failed for {os.path.basename(path)}",
                details={"path": path},
            )
        return ledger_data

    def load_from_disk(self) -> Tuple[bool, Optional[dict], str]:
        """
        Load the ledger snapshot, falling back to backups if it is corrupted.

        Returns:
            tuple: (success, ledger_data or None, message)
        """
        with self.lock:
            if not os.path.exists(self.ledger_file):
                return False, None, "No ledger file found"

            try:
                ledger_data = self._read_package(self.ledger_file)
                return True, ledger_data, "Ledger loaded successfully"

            except CorruptedDataError as e:
                logger.warning(
                    "Ledger file corrupted, attempting recovery",
                    extra={"event": "storage.corrupted", "error": e.message},
                )
                recovered = self._recover_from_backup()
                if recovered is not None:
                    return True, recovered, "Recovered from backup"
                return False, None, "Recovery failed - no valid backup found"

            except OSError as e:
                logger.error(
                    "Failed to load ledger from disk",
                    extra={
                        "event": "storage.load_failed",
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                return False, None, f"Failed to load ledger: {str(e)}"

    def _backup_files(self) -> List[str]:
        backups = [
            os.path.join(self.backup_dir, f)
            for f in os.listdir(self.backup_dir)
            if f.startswith(self.BACKUP_PREFIX) and f.endswith(".json")
        ]
        # Names embed a sortable timestamp; newest first
        backups.sort(reverse=True)
        return backups

    def _create_backup(self) -> bool:
        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_file = os.path.join(self.backup_dir, f"{self.BACKUP_PREFIX}{timestamp}.json")
            shutil.copy2(self.ledger_file, backup_file)
            self._cleanup_old_backups()
            return True
        except (OSError, shutil.Error) as e:
            logger.warning(
                "Failed to create ledger backup",
                extra={"event": "storage.backup_failed", "error": str(e)},
            )
            return False

    def _cleanup_old_backups(self) -> None:
        for backup in self._backup_files()[self.max_backups:]:
            try:
                os.remove(backup)
            except OSError as e:
                logger.warning(
                    "Failed to remove old backup",
                    extra={"event": "storage.cleanup_failed", "path": backup, "error": str(e)},
                )

    def _recover_from_backup(self) -> Optional[dict]:
        for backup_file in self._backup_files():
            try:
                ledger_data = self._read_package(backup_file)
            except (CorruptedDataError, OSError) as e:
                logger.warning(
                    "Skipping invalid backup",
                    extra={
                        "event": "storage.backup_invalid",
                        "backup": os.path.basename(backup_file),
                        "error": str(e),
                    },
                )
                continue
            logger.info(
                "Recovered ledger from backup",
                extra={"event": "storage.recovered", "backup": os.path.basename(backup_file)},
            )
            return ledger_data
        return None

    def list_backups(self) -> List[dict]:
        """List available backups, newest first."""
        backups = []
        for path in self._backup_files():
            stat = os.stat(path)
            backups.append(
                {
                    "filename": os.path.basename(path),
                    "size": stat.st_size,
                    "modified": stat.st_mtime,
                }
            )
        return backups

    def verify_integrity(self) -> Tuple[bool, str]:
        """Verify the main ledger file without attempting recovery."""
        with self.lock:
            if not os.path.exists(self.ledger_file):
                return False, "No ledger file found"
            try:
                self._read_package(self.ledger_file)
            except CorruptedDataError as e:
                return False, e.message
            except OSError as e:
                return False, f"Failed to read ledger: {e}"
            return True, "Ledger integrity verified"
