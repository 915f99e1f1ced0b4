import os


def _env_flag(name: str, default: str = "1") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in {"1", "true", "yes", "on"}


def clamped_env_ms(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read a millisecond setting; unparseable values fall back to `default`."""
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return int(max(minimum, min(maximum, value)))


DAY_MS = 24 * 60 * 60 * 1000

CAMPAIGN_CHECK_MS = clamped_env_ms("SIGNAGE_CAMPAIGN_CHECK_MS", 5_000, 1_000, 60_000)
EXPIRED_CAMPAIGN_CLEANUP_MS = clamped_env_ms(
    "SIGNAGE_EXPIRED_CAMPAIGN_CLEANUP_MS", 60_000, 10_000, 60 * 60 * 1000
)
EXPIRED_CAMPAIGN_GRACE_MS = clamped_env_ms(
    "SIGNAGE_EXPIRED_CAMPAIGN_GRACE_MS", 60 * 60 * 1000, 60_000, 30 * DAY_MS
)
PLAYER_REFRESH_MS = clamped_env_ms("SIGNAGE_PLAYER_REFRESH_MS", 60_000, 5_000, 60 * 60 * 1000)

API_KEY = os.getenv("SIGNAGE_API_KEY", "").strip()
SERVER_PORT = int(os.getenv("SIGNAGE_SERVER_PORT", "8000"))
UPLOADS_DIR = (os.getenv("SIGNAGE_UPLOADS_DIR", "") or "").strip() or "storage/uploads"
MAX_UPLOAD_BYTES = int(os.getenv("SIGNAGE_MAX_UPLOAD_BYTES", str(250 * 1024 * 1024)))
QUIET_ACCESS_LOG = _env_flag("SIGNAGE_QUIET_ACCESS_LOG")
QUIET_WEBSOCKET_LOG = _env_flag("SIGNAGE_QUIET_WEBSOCKET_LOG")
