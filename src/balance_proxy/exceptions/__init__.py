from balance_proxy.exceptions.base import (
    BalanceProxyError,
    BalanceProxyTypeError,
    BalanceProxyValueError,
)
from balance_proxy.exceptions.cancellation import OperationAborted

from . import cancellation, funding, proxy, rewrite, simulation

__all__ = (
    "BalanceProxyError",
    "BalanceProxyTypeError",
    "BalanceProxyValueError",
    "OperationAborted",
    "cancellation",
    "funding",
    "proxy",
    "rewrite",
    "simulation",
)
