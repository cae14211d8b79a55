"""Default configuration for squarecam.

`load_config` reads a JSON file of capture settings, merges it over
`DEFAULT_CAPTURE` and validates the result. `DEFAULT_SIMULATION` describes the
cameras the simulated session pretends to have.
"""

from pathlib import Path
import json
from typing import Dict, Any

DEFAULT_SAMPLE = Path(__file__).with_name("sample_config.json")

DEFAULT_CAPTURE = {
    "preview_max_width": 640,
    "picture_max_width": 1280,
    "aspect_numerator": 4,
    "aspect_denominator": 3,
    "landscape_offset_correction": False,
    "capture_timeout": 10.0,  # seconds
}

DEFAULT_SIMULATION = {
    "cameras": [
        {"facing": "back", "orientation": 90},
        {"facing": "front", "orientation": 270},
    ],
    "preview_sizes": [[1920, 1080], [1280, 960], [800, 600], [640, 480], [320, 240]],
    "picture_sizes": [[4032, 3024], [1920, 1080], [1280, 960], [1024, 768], [640, 480]],
    "flash_modes": ["off", "auto", "on", "torch"],
    "display_size": [1080, 1794],
    "real_display_size": [1080, 1920],
}

_POSITIVE_INTS = ("preview_max_width", "picture_max_width", "aspect_numerator", "aspect_denominator")


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for key in cfg:
        if key not in DEFAULT_CAPTURE:
            raise ValueError(f"Unknown capture config key: {key}")
    for key in _POSITIVE_INTS:
        v = cfg[key]
        if not isinstance(v, int) or isinstance(v, bool) or v <= 0:
            raise ValueError(f"'{key}' must be a positive integer (got {v!r})")
    if not isinstance(cfg["landscape_offset_correction"], bool):
        raise ValueError("'landscape_offset_correction' must be true or false")
    timeout = cfg["capture_timeout"]
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ValueError(f"'capture_timeout' must be a positive number (got {timeout!r})")
    return cfg


def load_config(path: str = None) -> Dict[str, Any]:
    """Load capture settings. If `path` is None, use the bundled sample file.

    Keys missing from the file keep their defaults.
    """
    p = Path(path) if path else DEFAULT_SAMPLE
    if not p.exists():
        raise FileNotFoundError(f"Capture config not found: {p}")

    with p.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Capture config must be a JSON object: {p}")

    cfg = dict(DEFAULT_CAPTURE)
    cfg.update(data)
    return validate_config(cfg)


if __name__ == "__main__":
    # Quick smoke test when run directly
    import sys
    path = sys.argv[1] if len(sys.argv) > 1 else None
    cfg = load_config(path)
    print("Loaded capture config:", cfg)
