# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Runtime collaborators for AgtronCam.

Everything outside the colorimetric core lives here:

1. Interfaces -- frame source, region provider and settings store protocols
2. Implementations -- array/OpenCV frame sources, centred layout, stores
3. Serializers -- settings JSON, log CSV and PNG snapshots

The core reaches these only through the interfaces.
"""

from agtroncam.runtime.interfaces import (
    Frame,
    FrameSource,
    RegionProvider,
    SettingsStore,
)
from agtroncam.runtime.layout import CenteredLayout
from agtroncam.runtime.sources import ArrayFrameSource, OpenCVFrameSource
from agtroncam.runtime.store import JsonFileSettingsStore, MemorySettingsStore
from agtroncam.runtime.serializers import (
    CSV_COLUMNS,
    SerializerFormat,
    export_csv,
    export_image,
    export_json,
    import_json,
)

__all__ = [
    "Frame",
    "FrameSource",
    "RegionProvider",
    "SettingsStore",
    "CenteredLayout",
    "ArrayFrameSource",
    "OpenCVFrameSource",
    "MemorySettingsStore",
    "JsonFileSettingsStore",
    "SerializerFormat",
    "export_json",
    "import_json",
    "export_csv",
    "CSV_COLUMNS",
    "export_image",
]
