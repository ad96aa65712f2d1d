"""
Ephemeral database for integration environments.

A throw-away SQLite file created at boot and removed at shutdown. The schema
is always recreated from the ORM metadata.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from core.config import EphemeralSettings, settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class EphemeralDatabase:
    def __init__(self, options: Optional[EphemeralSettings] = None) -> None:
        self._options = options or settings.ephemeral
        self._directory: Optional[Path] = None

    @property
    def is_running(self) -> bool:
        return self._directory is not None

    @property
    def path(self) -> Path:
        if self._directory is None:
            raise RuntimeError("Ephemeral database has not been started")
        return self._directory / f"{self._options.database_name}.db"

    @property
    def url(self) -> str:
        return f"sqlite+aiosqlite:///{self.path.as_posix()}"

    def start(self) -> str:
        """Allocate the database file location and return its URL."""
        if self._directory is not None:
            logger.debug("ephemeral_database_already_running", url=self.url)
            return self.url
        self._directory = Path(tempfile.mkdtemp(prefix="items-ephemeral-"))
        logger.info(
            "ephemeral_database_started",
            path=str(self.path),
            url=self.url,
            keep_file=self._options.keep_file,
        )
        return self.url

    def stop(self) -> None:
        if self._directory is None:
            logger.debug("ephemeral_database_not_running")
            return
        directory, self._directory = self._directory, None
        if self._options.keep_file:
            logger.info("ephemeral_database_kept", path=str(directory))
            return
        shutil.rmtree(directory, ignore_errors=True)
        logger.info("ephemeral_database_stopped", removed=not os.path.exists(directory))

    def __enter__(self) -> "EphemeralDatabase":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
