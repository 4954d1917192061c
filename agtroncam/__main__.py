# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Command-line roast estimation for still images.

Usage:
    python -m agtroncam beans.jpg --calibrate-white --mode bean
    python -m agtroncam grounds.png --settings calib.json --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from agtroncam.errors import AgtronCamError
from agtroncam.measure import estimate
from agtroncam.runtime.serializers import import_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agtroncam",
        description="Estimate an Agtron-like roast score from a photo of coffee.",
    )
    parser.add_argument("image", type=Path, help="Image with coffee centred in frame")
    parser.add_argument(
        "--calibrate-white",
        action="store_true",
        help="Derive white balance from white paper in the top-right corner",
    )
    parser.add_argument("--mode", choices=["ground", "bean"], default=None)
    parser.add_argument("--scheme", choices=["gourmet", "commercial"], default=None)
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Exported calibration JSON (gains, model, ...)",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("agtroncam")

    try:
        settings = None
        if args.settings is not None:
            settings = import_json(args.settings.read_bytes())
        result = estimate(
            args.image,
            calibrate_white=args.calibrate_white,
            mode=args.mode,
            scheme=args.scheme,
            settings=settings,
        )
    except (AgtronCamError, OSError) as e:
        logger.error("%s", e)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"L*={result.L:.1f}  a*={result.a:.1f}  b*={result.b:.1f}")
        print(f"Agtron ~ {result.score:.1f}  ({result.category.name}: {result.category.description})")
        print(f"glare {result.glare:.1f}%  wb {result.wb_deviation.max_deviation:.1f}  "
              f"ready {result.readiness:.0f}")
        for hint in result.hints:
            print(f"- {hint}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
