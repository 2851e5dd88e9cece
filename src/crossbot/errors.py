"""Error taxonomy shared across the controller."""

from __future__ import annotations


class CrossbotError(Exception):
    """Base class for controller errors."""


class ConfigurationError(CrossbotError, ValueError):
    """Invalid startup inputs; the controller must not start."""


class GatewayError(CrossbotError):
    """Synchronous failure raised by an order gateway."""
