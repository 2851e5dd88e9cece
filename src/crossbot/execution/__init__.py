"""Order gateway, request building and execution."""

from crossbot.execution.executor import OrderExecutor
from crossbot.execution.gateway import OrderGateway
from crossbot.execution.models import (
    Account,
    Instrument,
    OrderKind,
    OrderRequest,
    OrderResult,
    Position,
    ResultStatus,
    Side,
    Trade,
)
from crossbot.execution.paper import PaperGateway
from crossbot.execution.requests import build_order_request, generate_source_tag

__all__ = [
    "Account",
    "Instrument",
    "OrderExecutor",
    "OrderGateway",
    "OrderKind",
    "OrderRequest",
    "OrderResult",
    "PaperGateway",
    "Position",
    "ResultStatus",
    "Side",
    "Trade",
    "build_order_request",
    "generate_source_tag",
]
