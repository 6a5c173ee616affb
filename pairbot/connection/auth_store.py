"""
Credential directory for the WhatsApp session

The session library keeps its credentials in this directory. Next to them
two small diagnostic files are written:
- session_info.json: the last QR announcement
- connection_info.json: the last successful connection
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SESSION_INFO_FILE = "session_info.json"
CONNECTION_INFO_FILE = "connection_info.json"
STALE_AUTH_MAX_AGE_SECONDS = 24 * 60 * 60


class AuthStore:
    """Files under the session credential directory"""

    def __init__(self, auth_dir: str | Path):
        self.auth_dir = Path(auth_dir)

    def ensure_directory(self) -> None:
        self.auth_dir.mkdir(parents=True, exist_ok=True, mode=0o700)

    def prune_stale(self, max_age_seconds: float = STALE_AUTH_MAX_AGE_SECONDS) -> list[str]:
        """
        Delete ``.json`` files not modified for ``max_age_seconds``

        Returns:
            Names of removed files
        """
        removed: list[str] = []
        if not self.auth_dir.exists():
            return removed

        cutoff = time.time() - max_age_seconds
        for path in self.auth_dir.glob("*.json"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path.name)
                    logger.info(f"Removed old auth file: {path.name}")
            except OSError as e:
                logger.warning(f"Could not prune auth file {path.name}: {e}")

        return removed

    def purge_credentials(self) -> int:
        """
        Delete everything in the credential directory

        Used after WhatsApp reports the device as logged out; the stored
        credentials can never be used again.

        Returns:
            Number of entries removed
        """
        if not self.auth_dir.exists():
            return 0

        removed = 0
        for path in self.auth_dir.iterdir():
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                removed += 1
            except OSError as e:
                logger.error(f"Error cleaning session file {path.name}: {e}")

        logger.warning(f"Purged {removed} credential file(s) from {self.auth_dir}")
        return removed

    def _write_json(self, name: str, data: dict[str, Any]) -> Path:
        """Write a JSON file atomically"""
        self.ensure_directory()
        target = self.auth_dir / name

        fd, tmp_path = tempfile.mkstemp(dir=self.auth_dir, prefix=f"{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, target)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        return target

    def read_json(self, name: str) -> dict[str, Any] | None:
        path = self.auth_dir / name
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {name}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def write_session_info(self, data: dict[str, Any]) -> Path:
        return self._write_json(SESSION_INFO_FILE, data)

    def write_connection_info(self, data: dict[str, Any]) -> Path:
        return self._write_json(CONNECTION_INFO_FILE, data)

    def read_connection_info(self) -> dict[str, Any] | None:
        return self.read_json(CONNECTION_INFO_FILE)
