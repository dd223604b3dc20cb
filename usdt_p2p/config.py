"""
Configuration loader.

Reads a YAML config over built-in defaults and applies overrides from
environment variables (``.env`` is loaded on import).
"""

import copy
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG: dict = {
    "market": {"asset": "USDT", "fiat": "VND"},
    "cache": {"refresh_interval_minutes": 10, "max_age_minutes": 30},
    "search": {"top_n": 5},
    "sources": {"enabled": ["binance", "okx"], "timeout_seconds": 30, "rows": 10},
}


def load_config(config_path: str = "config.yaml") -> dict:
    """
    Load configuration from YAML file, falling back to defaults.

    Environment overrides: P2P_ASSET, P2P_FIAT, P2P_SOURCES (comma list),
    P2P_REFRESH_MINUTES.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

    # Inject overrides from environment
    if os.getenv("P2P_ASSET"):
        config["market"]["asset"] = os.environ["P2P_ASSET"].upper()
    if os.getenv("P2P_FIAT"):
        config["market"]["fiat"] = os.environ["P2P_FIAT"].upper()
    if os.getenv("P2P_SOURCES"):
        config["sources"]["enabled"] = [
            s.strip() for s in os.environ["P2P_SOURCES"].split(",") if s.strip()
        ]
    if os.getenv("P2P_REFRESH_MINUTES"):
        config["cache"]["refresh_interval_minutes"] = float(os.environ["P2P_REFRESH_MINUTES"])

    _validate(config)
    return config


def _validate(config: dict) -> None:
    cache = config["cache"]
    refresh = cache.get("refresh_interval_minutes")
    max_age = cache.get("max_age_minutes")
    if not isinstance(refresh, (int, float)) or refresh <= 0:
        raise ValueError("cache.refresh_interval_minutes must be positive")
    if not isinstance(max_age, (int, float)) or max_age < refresh:
        raise ValueError("cache.max_age_minutes must be >= refresh_interval_minutes")

    top_n = config["search"].get("top_n")
    if not isinstance(top_n, int) or top_n < 1:
        raise ValueError("search.top_n must be an integer >= 1")

    timeout = config["sources"].get("timeout_seconds")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("sources.timeout_seconds must be positive")
