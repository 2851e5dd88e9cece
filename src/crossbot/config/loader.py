"""Load and freeze configuration files."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from crossbot.config.models import (
    BotConfig,
    ControllerConfig,
    ExecutionConfig,
    MonitoringConfig,
    RuntimeConfig,
    StrategyConfig,
)
from crossbot.errors import ConfigurationError
from crossbot.execution.models import OrderKind
from crossbot.strategy.market_data import PERIODS
from crossbot.strategy.models import StrategyKind


def load_config(path: str | Path) -> BotConfig:
    path = Path(path)
    data = _load_yaml(path)

    name = _require(data, "name")
    version = str(_require(data, "version"))
    run_id_prefix = data.get("run_id_prefix", name)

    return BotConfig(
        name=name,
        version=version,
        run_id_prefix=run_id_prefix,
        controller=_parse_controller(_require(data, "controller")),
        strategy=_parse_strategy(_require(data, "strategy")),
        execution=_parse_execution(data.get("execution", {})),
        monitoring=_parse_monitoring(data.get("monitoring", {})),
        runtime=_parse_runtime(data.get("runtime", {})),
    )


def compute_config_hash(path: str | Path) -> str:
    path = Path(path)
    content = path.read_bytes()
    return hashlib.sha256(content).hexdigest()


def freeze_config(path: str | Path, lock_path: Optional[str | Path] = None) -> Path:
    path = Path(path)
    config_hash = compute_config_hash(path)
    if lock_path is None:
        lock_path = path.with_suffix(path.suffix + ".lock.json")
    lock_path = Path(lock_path)

    payload = {
        "config_path": str(path),
        "config_hash": config_hash,
        "frozen_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    lock_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return lock_path


def verify_config_lock(path: str | Path, lock_path: Optional[str | Path] = None) -> bool:
    path = Path(path)
    if lock_path is None:
        lock_path = path.with_suffix(path.suffix + ".lock.json")
    lock_path = Path(lock_path)
    if not lock_path.exists():
        return False
    payload = json.loads(lock_path.read_text(encoding="utf-8"))
    expected = payload.get("config_hash")
    return expected == compute_config_hash(path)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError("Config must be a mapping")
    return data


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigurationError(f"Missing required config key: {key}")
    return data[key]


def _parse_enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {key}: {value}") from exc


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from exc


def _optional_ticks(value: Any, key: str) -> Optional[int]:
    if value is None:
        return None
    ticks = _as_int(value, key)
    if ticks <= 0:
        raise ConfigurationError(f"{key} must be positive, got {ticks}")
    return ticks


def _parse_start_point(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid start_point: {value}") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_controller(data: dict[str, Any]) -> ControllerConfig:
    quantity = _as_float(data.get("quantity", 1.0), "quantity")
    if quantity <= 0:
        raise ConfigurationError(f"quantity must be positive, got {quantity}")

    period = str(data.get("period", "M5")).upper()
    if period not in PERIODS:
        raise ConfigurationError(f"Unsupported period: {period}")

    entry_offset_ticks = _as_int(data.get("entry_offset_ticks", 0), "entry_offset_ticks")
    if entry_offset_ticks < 0:
        raise ConfigurationError(f"entry_offset_ticks must not be negative, got {entry_offset_ticks}")

    return ControllerConfig(
        instrument=str(_require(data, "instrument")),
        account=str(_require(data, "account")),
        quantity=quantity,
        period=period,
        start_point=_parse_start_point(data.get("start_point")),
        lookback_days=_as_int(data.get("lookback_days", 100), "lookback_days"),
        strategy_id=_as_int(data.get("strategy_id", 1), "strategy_id"),
        order_kind=_parse_enum(OrderKind, data.get("order_kind", "market"), "order_kind"),
        entry_offset_ticks=entry_offset_ticks,
        stop_loss_ticks=_optional_ticks(data.get("stop_loss_ticks"), "stop_loss_ticks"),
        take_profit_ticks=_optional_ticks(data.get("take_profit_ticks"), "take_profit_ticks"),
        source_prefix=str(data.get("source_prefix", "MA_Cross")),
    )


def _parse_strategy(data: dict[str, Any]) -> StrategyConfig:
    return StrategyConfig(
        kind=_parse_enum(StrategyKind, _require(data, "kind"), "strategy kind"),
        parameters=dict(data.get("parameters", {}) or {}),
    )


def _parse_execution(data: dict[str, Any]) -> ExecutionConfig:
    return ExecutionConfig(
        gateway=str(data.get("gateway", "paper")),
        connection_id=str(data.get("connection_id", "paper")),
        fee_per_unit=_as_float(data.get("fee_per_unit", 0.0), "fee_per_unit"),
        tick_size=_as_float(data.get("tick_size", 0.0001), "tick_size"),
    )


def _parse_monitoring(data: dict[str, Any]) -> MonitoringConfig:
    return MonitoringConfig(
        audit_log_path=str(data.get("audit_log_path", "runtime/audit.log")),
    )


def _parse_runtime(data: dict[str, Any]) -> RuntimeConfig:
    return RuntimeConfig(
        bar_loop_interval_seconds=_as_float(data.get("bar_loop_interval_seconds", 1.0), "bar_loop_interval_seconds"),
        status_interval_seconds=_as_float(data.get("status_interval_seconds", 5.0), "status_interval_seconds"),
        metrics_path=str(data.get("metrics_path", "runtime/metrics.json")),
        halt_path=str(data.get("halt_path", "runtime/halt.json")),
        halt_latched=bool(data.get("halt_latched", True)),
    )


def serialize_config(config: BotConfig) -> dict[str, Any]:
    payload = asdict(config)
    payload["strategy"]["kind"] = config.strategy.kind.value
    payload["controller"]["order_kind"] = config.controller.order_kind.value
    start_point = config.controller.start_point
    payload["controller"]["start_point"] = start_point.isoformat() if start_point else None
    return payload
