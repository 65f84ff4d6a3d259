"""Central configuration loader for Equity Advisor."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Project root is the parent of the equity_advisor/ directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")


def load_settings(path: Path | None = None) -> dict:
    """Load settings from configs/settings.yaml.

    A missing or empty file yields an empty dict; every component carries
    in-code defaults matching the shipped YAML.
    """
    settings_path = Path(path or os.getenv("EQUITY_ADVISOR_SETTINGS", "") or Paths.SETTINGS)
    if not settings_path.exists():
        return {}
    with open(settings_path) as f:
        return yaml.safe_load(f) or {}


def section(name: str, settings: dict | None = None) -> dict:
    """Return a top-level settings section, or an empty dict."""
    source = SETTINGS if settings is None else settings
    value = source.get(name) or {}
    return value if isinstance(value, dict) else {}


# --- Paths ---
class Paths:
    ROOT = PROJECT_ROOT
    CONFIGS = PROJECT_ROOT / "configs"
    SETTINGS = PROJECT_ROOT / "configs" / "settings.yaml"


SETTINGS = load_settings()

LOG_LEVEL = os.getenv(
    "EQUITY_ADVISOR_LOG_LEVEL",
    str(section("app").get("log_level", "INFO")),
)
