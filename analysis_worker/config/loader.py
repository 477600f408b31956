"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from analysis_worker.models import SettingsConfig

# ANALYSIS_WORKER_ENV values that turn on the local-development override.
_LOCAL_ENVIRONMENTS = frozenset({"local", "development", "dev"})


def _read_yaml(path: str) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def load_settings(path: str = "config/settings.yaml") -> SettingsConfig:
    load_dotenv()
    settings = SettingsConfig.model_validate(_read_yaml(path))
    base_url = os.getenv("SCORING_BASE_URL")
    if base_url:
        settings.scoring.base_url = base_url
    return settings


def is_local_development() -> bool:
    """True when ANALYSIS_WORKER_ENV names a local environment."""
    load_dotenv()
    return os.getenv("ANALYSIS_WORKER_ENV", "").strip().lower() in _LOCAL_ENVIRONMENTS
