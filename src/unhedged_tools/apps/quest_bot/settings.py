"""Assemble typed bot settings from the layered YAML configuration."""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from unhedged_tools.apps.quest_bot.models import BettingConfig, BotConfig, PollingConfig
from unhedged_tools.clients._http import ServerRetryConfig
from unhedged_tools.clients._rate_limit import RateLimitConfig
from unhedged_tools.core.config import ConfigError, ConfigLoader

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class Settings:
    """Everything needed to build the clients and the bot.

    Args:
        bot: Bot behaviour configuration.
        rate_limit: Request budget for the Unhedged API.
        server_retry: Gateway-error retry policy shared by both clients.
        price_rate_limit: Request budget for the price provider.

    """

    bot: BotConfig = field(default_factory=BotConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    server_retry: ServerRetryConfig = field(default_factory=ServerRetryConfig)
    price_rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)


def load_settings(
    config_path: Path | None = None,
    *,
    config_dir: Path | None = None,
    dry_run: bool = False,
    max_total_bets: int | None = None,
) -> Settings:
    """Load settings from YAML and apply command-line overrides.

    Args:
        config_path: Optional user YAML file merged over the defaults.
        config_dir: Directory holding ``settings.yaml``; defaults to the
            packaged config directory.
        dry_run: Force dry-run mode regardless of the file setting.
        max_total_bets: Override for ``betting.max_total_bets``.

    Returns:
        The assembled ``Settings``.

    Raises:
        ConfigError: If a value cannot be converted to its expected type or
            names an unknown timezone.

    """
    loader = ConfigLoader(config_dir=config_dir, override_file=config_path)
    betting = _build_betting(loader.section("betting"))
    if max_total_bets is not None:
        betting = _replace_cap(betting, max_total_bets)

    bot = BotConfig(
        betting=betting,
        polling=_build_polling(loader.section("polling")),
        dry_run=dry_run or _to_bool(loader.get("dry_run", False), "dry_run"),
        timezone=_to_timezone(loader.get("timezone", "UTC")),
    )
    return Settings(
        bot=bot,
        rate_limit=_build_rate_limit(loader.section("rate_limit"), "rate_limit"),
        server_retry=_build_server_retry(loader.section("server_retry")),
        price_rate_limit=_build_rate_limit(
            loader.section("price_rate_limit"), "price_rate_limit"
        ),
    )


def _build_betting(raw: dict[str, Any]) -> BettingConfig:
    """Build ``BettingConfig`` from the ``betting`` section."""
    defaults = BettingConfig()
    cap = raw.get("max_total_bets")
    fallback = raw.get("fallback_asset", defaults.fallback_asset)
    return BettingConfig(
        window_minutes=_to_int(raw.get("window_minutes", defaults.window_minutes), "window_minutes"),
        majority_weight=_to_decimal(raw.get("majority_weight", defaults.majority_weight), "majority_weight"),
        price_delta_weight=_to_decimal(
            raw.get("price_delta_weight", defaults.price_delta_weight), "price_delta_weight"
        ),
        majority_threshold=_to_decimal(
            raw.get("majority_threshold", defaults.majority_threshold), "majority_threshold"
        ),
        min_pool_size=_to_decimal(raw.get("min_pool_size", defaults.min_pool_size), "min_pool_size"),
        price_uncertainty_threshold=_to_decimal(
            raw.get("price_uncertainty_threshold", defaults.price_uncertainty_threshold),
            "price_uncertainty_threshold",
        ),
        cooldown_seconds=_to_float(raw.get("cooldown_seconds", defaults.cooldown_seconds), "cooldown_seconds"),
        use_all_balance=_to_bool(raw.get("use_all_balance", defaults.use_all_balance), "use_all_balance"),
        min_payout_threshold=_to_decimal(
            raw.get("min_payout_threshold", defaults.min_payout_threshold), "min_payout_threshold"
        ),
        max_total_bets=_to_int(cap, "max_total_bets") if cap not in (None, "") else None,
        market_horizon_minutes=_to_int(
            raw.get("market_horizon_minutes", defaults.market_horizon_minutes), "market_horizon_minutes"
        ),
        market_list_limit=_to_int(raw.get("market_list_limit", defaults.market_list_limit), "market_list_limit"),
        fallback_asset=str(fallback).upper() if fallback else None,
    )


def _replace_cap(betting: BettingConfig, max_total_bets: int) -> BettingConfig:
    """Return ``betting`` with a new bet cap (``0`` clears it)."""
    return replace(betting, max_total_bets=max_total_bets or None)


def _build_polling(raw: dict[str, Any]) -> PollingConfig:
    """Build ``PollingConfig`` from the ``polling`` section."""
    defaults = PollingConfig()
    values = {
        name: _to_float(raw.get(name, getattr(defaults, name)), name)
        for name in PollingConfig.__dataclass_fields__
    }
    return PollingConfig(**values)


def _build_rate_limit(raw: dict[str, Any], section: str) -> RateLimitConfig:
    """Build a ``RateLimitConfig`` from a rate-limit section."""
    defaults = RateLimitConfig()
    try:
        return RateLimitConfig(
            max_requests_per_minute=_to_int(
                raw.get("max_requests_per_minute", defaults.max_requests_per_minute),
                f"{section}.max_requests_per_minute",
            ),
            buffer_requests=_to_int(
                raw.get("buffer_requests", defaults.buffer_requests), f"{section}.buffer_requests"
            ),
            retry_after_seconds=_to_float(
                raw.get("retry_after_seconds", defaults.retry_after_seconds),
                f"{section}.retry_after_seconds",
            ),
        )
    except ValueError as exc:
        msg = f"{section}: {exc}"
        raise ConfigError(msg) from exc


def _build_server_retry(raw: dict[str, Any]) -> ServerRetryConfig:
    """Build ``ServerRetryConfig`` from the ``server_retry`` section."""
    defaults = ServerRetryConfig()
    return ServerRetryConfig(
        enabled=_to_bool(raw.get("enabled", defaults.enabled), "server_retry.enabled"),
        max_retries=_to_int(raw.get("max_retries", defaults.max_retries), "server_retry.max_retries"),
        wait_seconds=_to_float(raw.get("wait_seconds", defaults.wait_seconds), "server_retry.wait_seconds"),
    )


def _to_decimal(value: Any, name: str) -> Decimal:
    """Convert a config value to Decimal."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ConfigError(msg) from exc


def _to_float(value: Any, name: str) -> float:
    """Convert a config value to float."""
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ConfigError(msg) from exc


def _to_int(value: Any, name: str) -> int:
    """Convert a config value to int."""
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigError(msg) from exc


def _to_bool(value: Any, name: str) -> bool:
    """Convert a config value (bool or env-substituted string) to bool."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    msg = f"{name} must be a boolean, got {value!r}"
    raise ConfigError(msg)


def _to_timezone(value: Any) -> str:
    """Return ``value`` as an IANA zone name after checking it exists."""
    name = str(value).strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        msg = f"timezone must be an IANA zone name, got {value!r}"
        raise ConfigError(msg) from exc
    return name
