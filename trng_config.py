"""
Settings for the TrueRNG supply, read from the environment (and .env).
"""
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from randomorg_client import RANDOM_ORG_URL

logger = logging.getLogger(__name__)

# Ranges of the host settings panel
MIN_CACHED_NUMBERS = 5
MAX_CACHED_NUMBERS = 200
DEFAULT_CACHED_NUMBERS = 10
MIN_UPDATE_POINT = 1  # percent
MAX_UPDATE_POINT = 100
DEFAULT_UPDATE_POINT = 50
DEFAULT_TIMEOUT = 10.0  # seconds


@dataclass
class Settings:
    api_key: str = ""
    capacity: int = DEFAULT_CACHED_NUMBERS
    update_point: int = DEFAULT_UPDATE_POINT
    enabled: bool = True
    debug: bool = True
    timeout: float = DEFAULT_TIMEOUT
    endpoint: str = RANDOM_ORG_URL

    @property
    def refill_threshold(self) -> float:
        return self.update_point * 0.01


def clamp(value, lo, hi):
    return max(lo, min(hi, value))


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %s", name, raw, default)
        return default


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive), using %s", name, raw, default)
        return default
    return value


def _env_bool(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning("Ignoring %s=%r (not a boolean), using %s", name, raw, default)
    return default


def load_settings(dotenv=True) -> Settings:
    if dotenv:
        load_dotenv()
    return Settings(
        api_key=os.getenv("RANDOM_ORG_API_KEY", "").strip(),
        capacity=clamp(_env_int("TRNG_MAX_CACHED_NUMBERS", DEFAULT_CACHED_NUMBERS),
                       MIN_CACHED_NUMBERS, MAX_CACHED_NUMBERS),
        update_point=clamp(_env_int("TRNG_UPDATE_POINT", DEFAULT_UPDATE_POINT),
                           MIN_UPDATE_POINT, MAX_UPDATE_POINT),
        enabled=_env_bool("TRNG_ENABLED", True),
        debug=_env_bool("TRNG_DEBUG", True),
        timeout=_env_float("TRNG_TIMEOUT", DEFAULT_TIMEOUT),
        endpoint=os.getenv("TRNG_ENDPOINT", "").strip() or RANDOM_ORG_URL,
    )


def configure_logging(settings=None, default_level: int = logging.INFO) -> None:
    """Root logger setup. TRNG_LOG_LEVEL wins; debug=False quiets to WARNING."""
    level = default_level
    if settings is not None and not settings.debug:
        level = logging.WARNING
    level_name = os.getenv("TRNG_LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
