"""scriptlink configuration."""
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# External editor directory (platform default when unset)
EXTERNAL_DIR = os.getenv("SCRIPTLINK_EXTERNAL_DIR", "")
EXTERNAL_GLOB = os.getenv("SCRIPTLINK_EXTERNAL_GLOB", "*_Xed.lsl")

# Tracked script files inside repositories
SCRIPT_EXTENSION = os.getenv("SCRIPTLINK_SCRIPT_EXTENSION", ".lsl")

# Wait before reading a created/updated file so the editor can finish writing it
SETTLE_DELAY_SECONDS = _env_float("SCRIPTLINK_SETTLE_DELAY_SECONDS", 1.0)

GIT_BINARY = os.getenv("SCRIPTLINK_GIT_BINARY", "git")
LOG_LEVEL = os.getenv("SCRIPTLINK_LOG_LEVEL", "INFO")

OTEL_ENABLED = _env_bool("SCRIPTLINK_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SCRIPTLINK_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SCRIPTLINK_OTEL_SERVICE_NAME", "scriptlink")
PROM_PORT = _env_int("SCRIPTLINK_PROM_PORT", 9464)
