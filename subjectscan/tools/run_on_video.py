from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, is_dataclass
from pathlib import Path

import numpy as np

from subjectscan.core.config.presets import preset_patch
from subjectscan.core.config.settings import ScanSettings, scan_options_from_settings, settings_to_dict
from subjectscan.core.detectors.base import NullDetector
from subjectscan.core.detectors.yolo import YoloObjectDetector
from subjectscan.core.scanning.focus import subjects_to_focus_regions
from subjectscan.core.scanning.scanner import VideoScanner
from subjectscan.core.types import ScanProgress
from subjectscan.core.video_sources.base import OpenCVFileSource

OVERRIDES = (
    "interval",
    "min_score",
    "similarity_threshold",
    "min_detections",
    "max_samples",
    "max_objects_per_frame",
    "max_time_gap_for_match",
)


def _to_jsonable(obj):
    if is_dataclass(obj):
        return _to_jsonable(asdict(obj))
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


def _parse_segment(value: str) -> tuple[float, float]:
    try:
        start_s, end_s = value.split(":")
        return float(start_s), float(end_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"segment must look like START:END, got {value!r}") from None


def build_settings(args) -> ScanSettings:
    data = settings_to_dict(ScanSettings())
    if args.preset:
        data.update(preset_patch(args.preset))
    for name in OVERRIDES:
        value = getattr(args, name, None)
        if value is not None:
            data[name] = value
    data["model_name"] = args.model
    data["confidence"] = args.conf
    return ScanSettings(**data)


def _print_progress(progress: ScanProgress) -> None:
    print(
        f"[{progress.current_frame}/{progress.total_frames}] "
        f"{progress.percent_complete:5.1f}% eta {progress.estimated_remaining_seconds:.1f}s"
    )


def run(args):
    settings = build_settings(args)
    options = scan_options_from_settings(settings, args.segment)
    try:
        source = OpenCVFileSource(args.input)
    except RuntimeError:
        raise SystemExit(f"Cannot open video {args.input}") from None
    detector = (
        NullDetector()
        if args.mock
        else YoloObjectDetector(settings.model_name, conf=settings.confidence, classes=args.classes)
    )
    scanner = VideoScanner(source, detector)
    try:
        subjects = scanner.scan(
            source.duration(),
            options,
            on_progress=None if args.quiet else _print_progress,
        )
        width, height = source.frame_size()
    finally:
        source.close()

    regions = subjects_to_focus_regions(subjects, width, height) if width and height else []
    outputs = {
        "video": args.input,
        "frame_size": [width, height],
        "subjects": [dict(_to_jsonable(s), score=s.score) for s in subjects],
        "focus_regions": _to_jsonable(regions),
    }
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)
    print(f"Wrote {len(subjects)} subjects to {out_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scan a video for subjects and focus regions")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--preset", default=None, help="standard|responsive|sensitive")
    parser.add_argument("--model", default="yolo11n.pt")
    parser.add_argument("--conf", type=float, default=0.25)
    parser.add_argument("--classes", nargs="*", default=None, help="Class-name allow-list")
    parser.add_argument("--interval", type=float, default=None)
    parser.add_argument("--min-score", dest="min_score", type=float, default=None)
    parser.add_argument(
        "--similarity-threshold", dest="similarity_threshold", type=float, default=None
    )
    parser.add_argument("--min-detections", dest="min_detections", type=int, default=None)
    parser.add_argument("--max-samples", dest="max_samples", type=int, default=None)
    parser.add_argument(
        "--max-objects-per-frame", dest="max_objects_per_frame", type=int, default=None
    )
    parser.add_argument(
        "--max-time-gap", dest="max_time_gap_for_match", type=float, default=None
    )
    parser.add_argument(
        "--segment",
        type=_parse_segment,
        action="append",
        default=None,
        help="Restrict the scan to START:END seconds (repeatable)",
    )
    parser.add_argument(
        "--mock", action="store_true", help="Use a no-op detector (no model download)"
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print per-frame progress")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))
    run(args)


if __name__ == "__main__":
    main()
