# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Settings blob export and import.

The exported JSON is the same versioned blob the settings store persists,
so a file exported on one device can be imported on another.
"""

from __future__ import annotations

import json
from typing import Union

from agtroncam.errors import SettingsFormatError
from agtroncam.runtime.serializers.base import SerializerFormat
from agtroncam.schema import SettingsBlob


def export_json(
    blob: SettingsBlob,
    *,
    format: SerializerFormat = SerializerFormat.JSON_PRETTY,
) -> str:
    """Serialize a settings blob to JSON.

    Args:
        blob: Settings to export.
        format: Indented (JSON_PRETTY) or compact (JSON) output.

    Example::

        {
          "version": 1,
          "gains": {"r": 0.997, "g": 0.997, "b": 1.005},
          "ccm": [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
          "scale": 1.2,
          "offset": 10.0,
          "scheme": "gourmet",
          "gate": "normal",
          "mode": "ground",
          "model": {"type": "linear", "w": [10.0, 1.2]},
          "calPoints": [{"A": 58.0, "L": 40.1, "a": 6.2, "b": 12.9}]
        }
    """
    data = blob.to_dict()
    if format == SerializerFormat.JSON_PRETTY:
        return json.dumps(data, indent=2)
    return json.dumps(data, separators=(",", ":"))


def import_json(data: Union[str, bytes, bytearray]) -> SettingsBlob:
    """Parse and validate an exported settings blob.

    Raises:
        SettingsFormatError: If the input is not JSON or has the wrong shape.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SettingsFormatError(f"Settings are not valid JSON: {e}") from e
    return SettingsBlob.from_dict(raw)
