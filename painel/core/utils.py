"""Configuration helpers for the painel package."""
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path("secrets/painel.env")
_ENV_LOADED = False


def get_config_value(key: str, default: str = "") -> str:
    """Get configuration value from Streamlit secrets or environment variables.

    Checks Streamlit secrets first (for cloud deployment), then falls back
    to environment variables (for local development).
    """
    try:
        import streamlit as st
        from streamlit.errors import StreamlitAPIException
    except ImportError:
        return os.getenv(key, default)

    try:
        if hasattr(st, "secrets") and key in st.secrets:
            return str(st.secrets[key])
    except (FileNotFoundError, KeyError, StreamlitAPIException):
        pass

    return os.getenv(key, default)


def get_int_config(key: str, default: int) -> int:
    """Read an integer setting, keeping the default when the value is malformed."""

    raw = get_config_value(key, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer value %r for %s", raw, key)
        return default


def load_env_file(path: Path) -> None:
    """Load environment variables from a file if it exists."""
    if not path.exists():
        return

    try:
        with path.open(encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                if not key or key in os.environ:
                    continue
                os.environ[key] = value.strip().strip('"').strip("'")
    except OSError as exc:
        logger.debug("Could not load env file %s: %s", path, exc)


def ensure_env_loaded() -> None:
    """Populate settings from ``secrets/painel.env`` once per process."""

    global _ENV_LOADED
    if _ENV_LOADED:
        return
    _ENV_LOADED = True

    env_path = Path(os.getenv("PAINEL_ENV_FILE", DEFAULT_ENV_FILE))
    load_env_file(env_path)
