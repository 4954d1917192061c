# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""CSV export of the measurement log."""

from __future__ import annotations

import csv
import io
from typing import Iterable

from agtroncam.schema import MeasurementLogEntry

CSV_COLUMNS = (
    "time", "L", "a", "b", "Agtron", "category", "model", "scale", "offset",
    "glare", "wbDev", "ready", "gate", "mode", "device",
)


def export_csv(entries: Iterable[MeasurementLogEntry]) -> str:
    """Serialize log entries as CSV, one row per entry, every value quoted.

    Example::

        "time","L","a","b","Agtron",...
        "2026-10-18T09:12:03+00:00","40.12","6.21","12.94","58.1",...
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        row = entry.to_dict()
        writer.writerow([row[column] for column in CSV_COLUMNS])
    return buffer.getvalue()
