"""featureforest configuration."""
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


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    value = (os.getenv(name) or "").strip().lower()
    if value in choices:
        return value
    return default


# Logging
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_LEVEL = _env_choice("FEATUREFOREST_LOG_LEVEL", "info", {level.lower() for level in LOG_LEVELS}).upper()

# Assembly policies
ORPHAN_POLICY = _env_choice("FEATUREFOREST_ORPHAN_POLICY", "drop", {"drop", "promote"})
CHECK_SPANS = _env_bool("FEATUREFOREST_CHECK_SPANS", False)

# Rendering
OUTPUT_FORMAT = _env_choice("FEATUREFOREST_OUTPUT_FORMAT", "json", {"json", "yaml"})
JSON_INDENT = _env_int("FEATUREFOREST_JSON_INDENT", 2)

# HTTP API
MAX_REQUEST_BYTES = _env_int("FEATUREFOREST_MAX_REQUEST_BYTES", 1024 * 1024)
HOST = os.getenv("FEATUREFOREST_HOST", "127.0.0.1")
PORT = _env_int("FEATUREFOREST_PORT", 8000)
FRONTEND_ORIGIN = os.getenv("FEATUREFOREST_FRONTEND_ORIGIN", "http://localhost:3000")

# Observability
OTEL_ENABLED = _env_bool("FEATUREFOREST_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("FEATUREFOREST_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("FEATUREFOREST_OTEL_SERVICE_NAME", "featureforest")
PROM_PORT = _env_int("FEATUREFOREST_PROM_PORT", 0)
