from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = ROOT / "theaterorstream.yaml"

DEFAULTS: Dict[str, Any] = {
    "database_path": str(ROOT / "theaterorstream.db"),
    "analysis": {
        "model": "gpt-3.5-turbo",
        "max_tokens": 300,
        "review_limit": 5,
    },
    "certification": {
        "movie_regions": ["US", "IN", "GB"],
        "tv_regions": ["US", "IN"],
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_bytes": 10485760,
        "backup_count": 5,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: str | os.PathLike | None = None) -> Dict[str, Any]:
    """
    Build the settings dict: defaults, then the YAML file (if present), then env.

    API keys only ever come from the environment (or a .env file).
    """
    load_dotenv()
    config = copy.deepcopy(DEFAULTS)

    path = Path(config_path or os.getenv("THEATERORSTREAM_CONFIG") or DEFAULT_CONFIG_PATH)
    if path.exists():
        with open(path, "r") as f:
            _merge(config, yaml.safe_load(f) or {})

    config["database_path"] = os.getenv("DATABASE_PATH", config["database_path"])
    if os.getenv("LOG_LEVEL"):
        config["logging"]["level"] = os.getenv("LOG_LEVEL")
    config["tmdb_api_key"] = os.getenv("TMDB_API_KEY")
    config["omdb_api_key"] = os.getenv("OMDB_API_KEY")
    config["openai_api_key"] = os.getenv("OPENAI_API_KEY")
    return config
