# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""Base types and utilities for serializers."""

from enum import Enum


class SerializerFormat(Enum):
    """Output format for JSON serializers."""

    JSON = "json"
    JSON_PRETTY = "json_pretty"
