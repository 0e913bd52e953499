from __future__ import annotations

import os
from pathlib import Path

import yaml


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "config.yaml"

DEFAULTS = {
    "paths": {"who_lms_dir": "data/processed/who"},
    "database": {"url": "sqlite:///./outputs/growth.db"},
    "growth": {"trend_threshold": 0.2, "history_limit": 500},
    "logging": {"level": "INFO"},
}


def load_config(path: str | Path | None = None) -> dict:
    """Read the YAML config; GROWTH_CONFIG overrides the default location."""
    cfg_path = Path(path or os.environ.get("GROWTH_CONFIG") or DEFAULT_CONFIG_PATH)
    if not cfg_path.exists():
        raise FileNotFoundError(f"{cfg_path} not found")
    with cfg_path.open("r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}

    cfg = {section: dict(values) for section, values in DEFAULTS.items()}
    for section, values in loaded.items():
        cfg.setdefault(section, {}).update(values or {})
    return cfg


def resolve_path(p: str) -> Path:
    """Relative paths in the config are taken from the project root."""
    path = Path(p)
    return path if path.is_absolute() else PROJECT_ROOT / path
