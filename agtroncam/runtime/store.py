# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""Settings stores: in-memory and JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

from agtroncam.errors import SettingsFormatError

logger = logging.getLogger(__name__)


class MemorySettingsStore:
    """Keeps the settings blob in memory for the lifetime of the object."""

    def __init__(self, blob: Optional[dict] = None) -> None:
        self._blob = json.loads(json.dumps(blob)) if blob is not None else None

    def load(self) -> Optional[dict]:
        return json.loads(json.dumps(self._blob)) if self._blob is not None else None

    def save(self, blob: dict) -> None:
        self._blob = json.loads(json.dumps(blob))

    def clear(self) -> None:
        self._blob = None


class JsonFileSettingsStore:
    """
    Persists the settings blob as a JSON file.

    Writes go to a temporary sibling that is then renamed into place.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SettingsFormatError(f"Settings file {self.path} is not valid JSON: {e}") from e

    def save(self, blob: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(blob, indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.debug("Saved settings to %s", self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
