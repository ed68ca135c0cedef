import os
from datetime import time

from dotenv import find_dotenv, load_dotenv

from recurring_ledger.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}
_EXTERNAL_ENV_KEYS: set[str] = set()

CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "STORE_BACKEND",
    "FIRESTORE_PROJECT",
    "FIRESTORE_DATABASE",
    "SCHEDULER_ENABLED",
    "SCHEDULE_TIME",
    "SCHEDULE_TIMEZONE",
    "DELETE_PAGE_SIZE",
    "TRANSACTION_COLLECTIONS",
    "RECURRENCE_DISCOVERY",
    "PARTNERSHIP_POLICY",
)

DEFAULT_STORE_BACKEND = "firestore"
DEFAULT_SCHEDULE_TIME = "01:00"
DEFAULT_SCHEDULE_TIMEZONE = "America/Sao_Paulo"
DEFAULT_DELETE_PAGE_SIZE = 100
# One page is deleted in a single Firestore batch, which allows at most 500 writes.
MAX_DELETE_PAGE_SIZE = 500
DEFAULT_TRANSACTION_COLLECTIONS = ("transactions",)
DEFAULT_RECURRENCE_DISCOVERY = "per_user"
DEFAULT_PARTNERSHIP_POLICY = "full_delete"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    candidate = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def _clean_value(raw_value: str) -> str:
    """Drop a trailing ``# comment`` and surrounding quotes from a config value."""
    quote: str | None = None
    for index, char in enumerate(raw_value):
        if char in {"'", '"'}:
            if quote is None:
                quote = char
            elif quote == char:
                quote = None
        elif char == "#" and quote is None:
            raw_value = raw_value[:index]
            break
    value = raw_value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` pairs; nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = _clean_value(raw_value)
            if key and value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES
    global _EXTERNAL_ENV_KEYS

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _EXTERNAL_ENV_KEYS = set(os.environ.keys())

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    # Real environment variables (and .env) take precedence over config.yaml
    for key in CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def is_env_override(name: str) -> bool:
    return name in _EXTERNAL_ENV_KEYS


def get_env_str(name: str, default: str, choices: tuple[str, ...] | None = None) -> str:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    value = raw.lower() if choices else raw
    if choices and value not in choices:
        logger.warning(
            "[ENV] Invalid %s='%s' (expected one of %s), using default %s.",
            name,
            raw,
            ", ".join(choices),
            default,
        )
        return default
    return value


def get_env_int(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    if max_value is not None and value > max_value:
        logger.warning("[ENV] %s='%s' above maximum %s, using %s.", name, raw, max_value, max_value)
        return max_value
    return value


def get_env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
    return default


def parse_name_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    names: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return names


def get_env_list(name: str, default: tuple[str, ...]) -> list[str]:
    return parse_name_list(os.getenv(name)) or list(default)


def parse_time_of_day(raw: str) -> time:
    hour_text, _, minute_text = raw.strip().partition(":")
    hour = int(hour_text)
    minute = int(minute_text or 0)
    return time(hour=hour, minute=minute)


def get_env_time(name: str, default: str) -> time:
    raw = os.getenv(name) or default
    try:
        return parse_time_of_day(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return parse_time_of_day(default)


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "CREDENTIALS",
)

_ENV_KEYS_TO_LOG = CONFIG_KEYS + ("GOOGLE_APPLICATION_CREDENTIALS",)


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not any(marker in name.upper() for marker in _SENSITIVE_ENV_KEYS):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _ENV_KEYS_TO_LOG:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


load_environment()

LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")
