"""Posh Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax
(optionally ${VAR_NAME:-default}). Uses frozen dataclasses so the
configuration is built once at startup and passed into constructors.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?}")

DEFAULT_DISQUALIFYING_TERMS = (
    "flaw",
    "flaws",
    "flawed",
    "polartec",
    "vest",
    "stain",
    "damaged",
)

DEFAULT_HEADER_TEXT = "🔔 You got new deals!\n\nHere are the latest matching listings:"


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ScraperConfig:
    """Configuration for the headless browser and the search page."""

    base_url: str
    search_url: str
    listing_selector: str = "a.tile__covershot"
    max_scrolls: int = 10
    max_listings: int = 0
    navigation_timeout_ms: int = 20000
    search_settle_ms: int = 5000
    detail_settle_ms: int = 3000
    wait_until: str = "domcontentloaded"
    headless: bool = True
    browser_args: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")


@dataclass(frozen=True)
class FilterConfig:
    """Business rules deciding which listings are worth a notification."""

    max_matches: int = 10
    disqualifying_terms: tuple[str, ...] = DEFAULT_DISQUALIFYING_TERMS


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for Telegram notifications."""

    bot_token: str
    chat_id: str
    header_text: str = DEFAULT_HEADER_TEXT
    warmup_message: bool = True
    disable_preview: bool = False


@dataclass(frozen=True)
class ScheduleConfig:
    """Repeat interval. Zero means run once and exit."""

    interval_minutes: int = 0


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    scraper: ScraperConfig
    filter: FilterConfig
    telegram: TelegramConfig
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    database_path: str = "data/seen_listings.db"
    log_level: str = "INFO"


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced by their
        environment variable values (or inline defaults).

    Raises:
        ValueError: If a referenced variable is not set and has no default.
    """
    if isinstance(value, str):

        def _substitute(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is None or (env_value == "" and default is not None):
                if default is None:
                    raise ValueError(
                        f"Environment variable '${{{var_name}}}' is required but not set. "
                        f"Add it to your .env file or export it in your shell."
                    )
                return default
            return env_value

        return ENV_VAR_PATTERN.sub(_substitute, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


def _as_int(data: dict[str, Any], key: str, default: int, section: str, minimum: int = 0) -> int:
    """Read an integer bound, rejecting values below ``minimum``."""
    raw = data.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"'{section}.{key}' must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"'{section}.{key}' must be >= {minimum}, got {value}")
    return value


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() not in ("0", "false", "no", "off", "")
    return bool(raw)


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_scraper_config(data: dict[str, Any]) -> ScraperConfig:
    """Build a ScraperConfig from the 'scraper' section of settings.yaml."""
    _validate_keys(data, ["base_url", "search_url"], "scraper")

    args = data.get("browser_args")
    return ScraperConfig(
        base_url=str(data["base_url"]).rstrip("/"),
        search_url=str(data["search_url"]),
        listing_selector=data.get("listing_selector", ScraperConfig.listing_selector),
        max_scrolls=_as_int(data, "max_scrolls", 10, "scraper"),
        max_listings=_as_int(data, "max_listings", 0, "scraper"),
        navigation_timeout_ms=_as_int(data, "navigation_timeout_ms", 20000, "scraper", minimum=1),
        search_settle_ms=_as_int(data, "search_settle_ms", 5000, "scraper"),
        detail_settle_ms=_as_int(data, "detail_settle_ms", 3000, "scraper"),
        wait_until=data.get("wait_until", "domcontentloaded"),
        headless=_as_bool(data.get("headless", True)),
        browser_args=tuple(args) if args is not None else ScraperConfig.browser_args,
    )


def _build_filter_config(data: dict[str, Any]) -> FilterConfig:
    """Build a FilterConfig from the 'filter' section of settings.yaml."""
    terms = data.get("disqualifying_terms")
    return FilterConfig(
        max_matches=_as_int(data, "max_matches", 10, "filter", minimum=1),
        disqualifying_terms=(
            tuple(str(t) for t in terms) if terms is not None else DEFAULT_DISQUALIFYING_TERMS
        ),
    )


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section of settings.yaml."""
    _validate_keys(data, ["bot_token", "chat_id"], "telegram")

    return TelegramConfig(
        bot_token=data["bot_token"],
        chat_id=str(data["chat_id"]),
        header_text=data.get("header_text", DEFAULT_HEADER_TEXT),
        warmup_message=_as_bool(data.get("warmup_message", True)),
        disable_preview=_as_bool(data.get("disable_preview", False)),
    )


def _build_schedule_config(data: dict[str, Any]) -> ScheduleConfig:
    return ScheduleConfig(
        interval_minutes=_as_int(data, "interval_minutes", 0, "schedule"),
    )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def build_config(settings: dict[str, Any]) -> AppConfig:
    """Build a typed AppConfig from an already-resolved settings mapping.

    Args:
        settings: Parsed settings with environment placeholders resolved.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        ValueError: If required fields are missing or bounds are invalid.
    """
    _validate_keys(settings, ["scraper", "telegram"], "settings")

    return AppConfig(
        scraper=_build_scraper_config(settings["scraper"]),
        filter=_build_filter_config(settings.get("filter") or {}),
        telegram=_build_telegram_config(settings["telegram"]),
        schedule=_build_schedule_config(settings.get("schedule") or {}),
        database_path=(settings.get("database") or {}).get("path", "data/seen_listings.db"),
        log_level=(settings.get("logging") or {}).get("level", "INFO"),
    )


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads .env, reads settings.yaml, resolves environment variables and
    returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    raw_settings = _load_yaml(settings_path or SETTINGS_PATH)
    config = build_config(_resolve_env_vars(raw_settings))

    logger.info("Configuration loaded successfully")
    logger.debug("Database path: %s", config.database_path)
    logger.debug(
        "Bounds: max_scrolls=%d, max_matches=%d, timeout=%dms",
        config.scraper.max_scrolls,
        config.filter.max_matches,
        config.scraper.navigation_timeout_ms,
    )

    return config
