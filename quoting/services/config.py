import os


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def price_sync_debounce_seconds() -> float:
    raw = os.getenv("QUOTING_PRICE_SYNC_DEBOUNCE_MS", "500").strip()
    try:
        milliseconds = max(0, int(raw))
    except ValueError:
        milliseconds = 500
    return milliseconds / 1000


def price_sync_timeout_seconds() -> float:
    raw = os.getenv("QUOTING_PRICE_SYNC_TIMEOUT_MS", "30000").strip()
    try:
        milliseconds = int(raw)
    except ValueError:
        milliseconds = 30000
    if milliseconds <= 0:
        milliseconds = 30000
    return milliseconds / 1000


def package_store_url() -> str:
    return os.getenv("QUOTING_PACKAGE_STORE_URL", "").strip().rstrip("/")


def package_store_token() -> str:
    return os.getenv("QUOTING_PACKAGE_STORE_TOKEN", "").strip()


def audit_on_publish_enabled() -> bool:
    return env_bool("QUOTING_AUDIT_ON_PUBLISH", default=True)
