import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from clipkeep.exceptions import PersistenceError
from clipkeep.models.items import AppData

logger = logging.getLogger(__name__)

DATA_FILE_NAME = "clipboard_data.json"
LOG_FILE_NAME = "clipkeep.log"
HIGH_DISK_USAGE_BYTES = 10 * 1024 * 1024


class FileManager:
    """Owns the on-disk layout: the JSON document, its backups and the log.

    Writes go to ``<data>.tmp`` first and are moved over the primary with
    ``os.replace``, so a reader never sees a half-written document.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        if base_dir is None:
            base_dir = Path.home() / ".clipkeep"
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_path(self) -> Path:
        return self.base_dir / DATA_FILE_NAME

    @property
    def backup_path(self) -> Path:
        return self.base_dir / f"{DATA_FILE_NAME}.backup"

    @property
    def corrupt_path(self) -> Path:
        return self.base_dir / f"{DATA_FILE_NAME}.corrupt"

    @property
    def log_path(self) -> Path:
        return self.base_dir / LOG_FILE_NAME

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def save(self, data: AppData) -> int:
        """Persist ``data`` and return the number of bytes written."""
        if len(data.history) > data.settings.history_limit * 2:
            logger.warning("History holds far more items than its limit: %d", len(data.history))

        payload = data.model_dump_json(indent=2).encode("utf-8")
        self._preserve_previous()
        self._atomic_write(self.data_path, payload)
        logger.debug("Saved data file %s (%d bytes)", self.data_path, len(payload))
        return len(payload)

    def _preserve_previous(self) -> None:
        if not self.data_path.exists():
            return

        if self._read_data(self.data_path) is not None:
            try:
                self._atomic_write(self.backup_path, self.data_path.read_bytes())
            except (OSError, PersistenceError) as e:
                logger.warning(f"Could not refresh backup copy: {e}")
            return

        try:
            shutil.copy2(self.data_path, self.corrupt_path)
            logger.warning(f"Unreadable data file preserved as {self.corrupt_path}")
        except OSError as e:
            logger.warning(f"Could not preserve unreadable data file: {e}")

    def _atomic_write(self, path: Path, payload: bytes) -> None:
        temp_path = path.with_name(path.name + ".tmp")
        try:
            with open(temp_path, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
        except OSError as e:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove temp file %s", temp_path)
            raise PersistenceError(f"Failed to write {path.name}", e) from e

    # ------------------------------------------------------------------
    # Load path
    # ------------------------------------------------------------------
    def load(self) -> Tuple[AppData, str]:
        """Load the document, falling back to the backup and then to defaults.

        Returns the data and where it came from: ``"primary"``, ``"backup"``
        or ``"fresh"``. Never raises.
        """
        data = self._read_data(self.data_path)
        if data is not None:
            logger.info(f"Loaded data file {self.data_path}")
            return data, "primary"

        primary_present = self.data_path.exists()
        data = self._read_data(self.backup_path)
        if data is not None:
            logger.warning(f"Recovered data from backup {self.backup_path}")
            self._write_back(data)
            return data, "backup"

        if primary_present or self.backup_path.exists():
            logger.error("Data file and backup are both unreadable; starting with empty data")
        else:
            logger.info("No data file found; starting with empty data")
        data = AppData()
        self._write_back(data)
        return data, "fresh"

    def _write_back(self, data: AppData) -> None:
        try:
            self.save(data)
        except PersistenceError as e:
            logger.error(f"Could not write recovered data: {e}")

    def _read_data(self, path: Path) -> Optional[AppData]:
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Could not read {path.name}: {e}")
            return None

        if not raw.strip():
            logger.warning(f"{path.name} is empty")
            return None

        try:
            return AppData.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"{path.name} could not be parsed: {e.error_count()} error(s)")
            return None

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------
    def file_stats(self) -> Dict[str, Any]:
        data_size = self._size_of(self.data_path)
        backup_size = self._size_of(self.backup_path)
        log_size = self._size_of(self.log_path)
        total = data_size + backup_size + log_size
        return {
            "data_file_path": str(self.data_path),
            "data_file_size": data_size,
            "backup_file_size": backup_size,
            "log_file_path": str(self.log_path),
            "log_file_size": log_size,
            "total_size": total,
            "disk_usage": "High" if total > HIGH_DISK_USAGE_BYTES else "Normal",
        }

    @staticmethod
    def _size_of(path: Union[str, Path]) -> int:
        try:
            return Path(path).stat().st_size
        except OSError:
            return 0
