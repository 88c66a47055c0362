import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class AppConfig:
    api_base_url: str = "https://api.eco-paluds.fr"
    api_timeout: float = 10.0
    avatar_timeout: float = 30.0
    upload_timeout: float = 60.0
    token_store_path: Path = Path("data/session.csv")
    stale_seconds: float = 300.0
    query_retry: int = 2
    cache_max_entries: int = 500
    poll_interval: float = 2.0
    avatar_max_bytes: int = 5 * 1024 * 1024
    debug: bool = False


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value:
        return default
    return Path(value)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False

    logger.warning("Invalid boolean value for %s: %s", name, value)
    return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer value for %s: %s", name, value)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Invalid number value for %s: %s", name, value)
        return default


def configure_logging(debug: bool) -> None:
    """Development mode shows normalization diagnostics at DEBUG level."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_config() -> AppConfig:
    """Load configuration from defaults and optional .env overrides."""
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)

    defaults = AppConfig()

    return AppConfig(
        api_base_url=_env_str(
            "ECOCONNECT_API_BASE_URL", defaults.api_base_url
        ).rstrip("/"),
        api_timeout=_env_float("ECOCONNECT_API_TIMEOUT", defaults.api_timeout),
        avatar_timeout=_env_float(
            "ECOCONNECT_AVATAR_TIMEOUT", defaults.avatar_timeout
        ),
        upload_timeout=_env_float(
            "ECOCONNECT_UPLOAD_TIMEOUT", defaults.upload_timeout
        ),
        token_store_path=_env_path(
            "ECOCONNECT_TOKEN_STORE", defaults.token_store_path
        ),
        stale_seconds=_env_float(
            "ECOCONNECT_STALE_SECONDS", defaults.stale_seconds
        ),
        query_retry=_env_int("ECOCONNECT_QUERY_RETRY", defaults.query_retry),
        cache_max_entries=_env_int(
            "ECOCONNECT_CACHE_MAX_ENTRIES", defaults.cache_max_entries
        ),
        poll_interval=_env_float(
            "ECOCONNECT_POLL_INTERVAL", defaults.poll_interval
        ),
        avatar_max_bytes=_env_int(
            "ECOCONNECT_AVATAR_MAX_BYTES", defaults.avatar_max_bytes
        ),
        debug=_env_bool("ECOCONNECT_DEBUG", defaults.debug),
    )
