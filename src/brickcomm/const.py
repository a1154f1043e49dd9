import os

from brickcomm import __version__

__all__ = [
    "BRICKCOMM_CONNECT_TIMEOUT_MS",
    "BRICKCOMM_DEBUG",
    "BRICKCOMM_DISCONNECT_GRACE_MS",
    "BRICKCOMM_INQUIRY_DURATION",
    "BRICKCOMM_INQUIRY_MAX_RESULTS",
    "BRICKCOMM_LOG_FORMAT",
    "BRICKCOMM_LOG_HUMAN_OUTPUT",
    "BRICKCOMM_LOG_JSON_FILE",
    "BRICKCOMM_METRICS_PORT",
    "BRICKCOMM_PERF_THRESHOLD_MS",
    "BRICKCOMM_PERF_TRACKING",
    "BRICKCOMM_STRICT_CONNECT",
    "BRICKCOMM_VERSION",
    "INQUIRY_UNIT_SECONDS",
    "PEER_DEVICE_CLASS",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
BRICKCOMM_VERSION: str = __version__


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).casefold() in YES_ANSWER


BRICKCOMM_DEBUG: bool = _env_flag("BRICKCOMM_DEBUG")

# Logging
BRICKCOMM_LOG_FORMAT: str = os.environ.get("BRICKCOMM_LOG_FORMAT", "human").casefold()
_json_file = os.environ.get("BRICKCOMM_LOG_JSON_FILE")
BRICKCOMM_LOG_JSON_FILE: str | None = _json_file if _json_file else None
BRICKCOMM_LOG_HUMAN_OUTPUT: str = os.environ.get("BRICKCOMM_LOG_HUMAN_OUTPUT", "stderr")

# Connection lifecycle
BRICKCOMM_CONNECT_TIMEOUT_MS: int = _env_int("BRICKCOMM_CONNECT_TIMEOUT_MS", 10000)
BRICKCOMM_DISCONNECT_GRACE_MS: int = _env_int("BRICKCOMM_DISCONNECT_GRACE_MS", 80)
# Opt-in: raise instead of leaving a failed connect silently disconnected
BRICKCOMM_STRICT_CONNECT: bool = _env_flag("BRICKCOMM_STRICT_CONNECT")

# Radio inquiry. Duration is counted in units of 1.28 seconds.
BRICKCOMM_INQUIRY_MAX_RESULTS: int = _env_int("BRICKCOMM_INQUIRY_MAX_RESULTS", 10)
BRICKCOMM_INQUIRY_DURATION: int = _env_int("BRICKCOMM_INQUIRY_DURATION", 5)
INQUIRY_UNIT_SECONDS: float = 1.28
# Class of device advertised by peer bricks (major class "toy", minor "robot")
PEER_DEVICE_CLASS: int = 0x000804

# Instrumentation
BRICKCOMM_PERF_TRACKING: bool = _env_flag("BRICKCOMM_PERF_TRACKING")
BRICKCOMM_PERF_THRESHOLD_MS: int = _env_int("BRICKCOMM_PERF_THRESHOLD_MS", 500)
BRICKCOMM_METRICS_PORT: int = _env_int("BRICKCOMM_METRICS_PORT", 9400)
