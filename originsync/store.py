from __future__ import annotations

import logging
import threading
from pathlib import Path

import yaml

from originsync.errors import ConfigError
from originsync.models import Snapshot


class ConfigStore:
    def __init__(self, path: Path, logger: logging.Logger | None = None) -> None:
        self.path = Path(path)
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()

    def load(self) -> Snapshot:
        with self._lock:
            if not self.path.is_file():
                raise ConfigError(f"Config file does not exist: {self.path}")
            try:
                data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"Failed to read config file {self.path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a mapping at the top level.")
        try:
            return Snapshot.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise ConfigError(f"Config file {self.path} is malformed: {exc}") from exc

    def save(self, snapshot: Snapshot) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(
                yaml.safe_dump(snapshot.to_dict(), sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            tmp_path.chmod(0o600)
            tmp_path.replace(self.path)
        self._logger.info("Saved configuration to %s", self.path)
