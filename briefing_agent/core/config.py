from __future__ import annotations

import os


def env_bool(key: str, default: str = "0") -> bool:
    """
    Env bool parser.
    Accepts: 1/0, true/false, yes/no (case-insensitive)
    """
    v = os.getenv(key, default)
    if v is None:
        v = default
    return str(v).strip().lower() in ("1", "true", "yes", "y")


def env_str(key: str, default: str = "") -> str:
    v = os.getenv(key, default)
    if v is None:
        v = default
    return str(v).strip()


def env_float(key: str, default: str = "0") -> float:
    try:
        return float(env_str(key, default) or default)
    except ValueError:
        return float(default)


# -------------------------------------------------
# Runtime getters (read on every call so env changes apply on Streamlit reruns)
# -------------------------------------------------
def use_llm() -> bool:
    return env_bool("USE_LLM", "0")


def show_debug() -> bool:
    return env_bool("SHOW_DEBUG", "0")


def data_dir() -> str:
    return env_str("DATA_DIR", "data")


def briefs_path() -> str:
    return os.path.join(data_dir(), "briefs.json")


def exports_dir() -> str:
    return os.path.join(data_dir(), "exports")


def autosave_delay_sec() -> float:
    return env_float("AUTOSAVE_DELAY_SEC", "1.0")


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()
