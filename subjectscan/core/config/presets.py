from __future__ import annotations

from typing import Any

# Scan presets. These are alternative tunings of the same scanner rather than
# different algorithms.
#
# Notes:
# - max_samples bounds scan latency; raise it for long videos when time allows
# - min_detections > 1 drops one-off false positives at the cost of brief subjects


PRESETS: dict[str, dict[str, Any]] = {
    # Denser sampling, stricter matching; slower but fewer spurious subjects.
    "standard": {
        "interval": 1.0,
        "min_score": 0.5,
        "similarity_threshold": 0.6,
        "min_detections": 2,
        "max_objects_per_frame": 20,
        "max_samples": 100,
    },
    # Default: few frames, few objects per frame, fast feedback.
    "responsive": {
        "interval": 1.0,
        "min_score": 0.35,
        "similarity_threshold": 0.5,
        "min_detections": 1,
        "max_objects_per_frame": 3,
        "max_samples": 15,
    },
    # Catch low-confidence subjects (small or partially hidden objects).
    "sensitive": {
        "interval": 1.0,
        "min_score": 0.3,
        "similarity_threshold": 0.5,
        "min_detections": 1,
        "max_objects_per_frame": 5,
        "max_samples": 30,
    },
}


PRESET_LABELS: dict[str, str] = {
    "standard": "Standard",
    "responsive": "Responsive",
    "sensitive": "Sensitive",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
