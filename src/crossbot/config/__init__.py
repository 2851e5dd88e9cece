"""Config loading and freezing."""

from crossbot.config.loader import (
    compute_config_hash,
    freeze_config,
    load_config,
    serialize_config,
    verify_config_lock,
)
from crossbot.config.models import (
    BotConfig,
    ControllerConfig,
    ExecutionConfig,
    MonitoringConfig,
    RuntimeConfig,
    StrategyConfig,
)

__all__ = [
    "BotConfig",
    "ControllerConfig",
    "ExecutionConfig",
    "MonitoringConfig",
    "RuntimeConfig",
    "StrategyConfig",
    "compute_config_hash",
    "freeze_config",
    "load_config",
    "serialize_config",
    "verify_config_lock",
]
