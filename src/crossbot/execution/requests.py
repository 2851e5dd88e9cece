"""Order request construction and source tagging."""

from __future__ import annotations

from typing import Optional

from crossbot.execution.models import OrderKind, OrderRequest, Side

DEFAULT_SOURCE_PREFIX = "MA_Cross"


def build_order_request(
    account: str,
    instrument: str,
    side: Side | str,
    quantity: float,
    source_tag: str,
    order_kind: OrderKind | str = OrderKind.MARKET,
    price: Optional[float] = None,
    trigger_price: Optional[float] = None,
    stop_loss_ticks: Optional[int] = None,
    take_profit_ticks: Optional[int] = None,
) -> OrderRequest:
    """Build a market, limit or stop request.

    Limit orders need ``price`` and stop orders need ``trigger_price``.
    Stop-loss and take-profit are distances in ticks from the entry price.
    """
    kind = OrderKind(order_kind)
    if quantity <= 0:
        raise ValueError(f"Order quantity must be positive, got {quantity}")
    if kind == OrderKind.LIMIT and price is None:
        raise ValueError("Limit orders require a price")
    if kind == OrderKind.STOP and trigger_price is None:
        raise ValueError("Stop orders require a trigger price")
    for name, ticks in (("stop_loss_ticks", stop_loss_ticks), ("take_profit_ticks", take_profit_ticks)):
        if ticks is not None and ticks <= 0:
            raise ValueError(f"{name} must be positive, got {ticks}")

    return OrderRequest(
        account=account,
        instrument=instrument,
        side=Side(side),
        quantity=quantity,
        order_kind=kind,
        source_tag=source_tag,
        price=price,
        trigger_price=trigger_price,
        stop_loss_ticks=stop_loss_ticks,
        take_profit_ticks=take_profit_ticks,
    )


def generate_source_tag(
    strategy_id: int,
    instrument: Optional[str],
    action: Optional[str] = None,
    prefix: str = DEFAULT_SOURCE_PREFIX,
) -> str:
    return f"{prefix}_{strategy_id}_{instrument or 'Unknown'}_{action or 'Unknown'}"
