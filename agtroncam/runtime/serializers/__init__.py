# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Serializers for session export and import.

Settings round-trip through versioned JSON; the measurement log exports
as CSV; snapshots export as PNG.
"""

from agtroncam.runtime.serializers.base import SerializerFormat
from agtroncam.runtime.serializers.log import CSV_COLUMNS, export_csv
from agtroncam.runtime.serializers.settings import export_json, import_json
from agtroncam.runtime.serializers.snapshot import export_image

__all__ = [
    "SerializerFormat",
    "export_json",
    "import_json",
    "export_csv",
    "CSV_COLUMNS",
    "export_image",
]
