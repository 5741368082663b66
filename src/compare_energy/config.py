"""Runtime configuration read from the environment (and a .env file)."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_LOG_LEVEL = "WARNING"


def get_api_key() -> str:
    """Get the Gemini API key from environment."""
    key = os.environ.get("GEMINI_API_KEY")
    if not key:
        raise ValueError(
            "GEMINI_API_KEY environment variable not set.\n"
            "Create a key at https://aistudio.google.com/apikey\n"
            "Then set it: export GEMINI_API_KEY='your-key-here'"
        )
    return key


def get_model() -> str:
    """Get the Gemini model used for bill extraction."""
    return os.environ.get("GEMINI_MODEL", DEFAULT_MODEL)


def get_vat_rules_path() -> Path | None:
    """Get the path of a VAT rules YAML override, if one is configured."""
    path = os.environ.get("COMPARE_ENERGY_VAT_RULES")
    return Path(path) if path else None


def get_log_level() -> str:
    return os.environ.get("COMPARE_ENERGY_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
