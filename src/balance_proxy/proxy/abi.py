"""
Call surface of the balance proxy contract and its approve and permit routers.

Every entry point takes (constraints, approvals, target, data, withdrawals). Router entry points
take the balance proxy address first, and the permit router takes its permits after the
approvals. Metadata entry points add the (symbol, decimals) of each constrained token, embedded in
each constraint for the proxy and as a parallel list for the routers.
"""

import dataclasses
import enum

from balance_proxy.constraints.types import Mode

BALANCE = "(address,address,int256)"
APPROVAL = f"({BALANCE},bool)"
PERMIT = "(uint256,uint8,bytes32,bytes32)"
PROXY_META = f"({BALANCE},string,uint8)"
ROUTER_META = "(string,uint8)"


class ProxyContract(enum.Enum):
    PROXY = "proxy"
    APPROVE_ROUTER = "approve router"
    PERMIT_ROUTER = "permit router"


@dataclasses.dataclass(slots=True, frozen=True)
class EntryPoint:
    contract: ProxyContract
    mode: Mode
    with_meta: bool
    prototype: str

    @property
    def name(self) -> str:
        return self.prototype[: self.prototype.find("(")]


def _proxy_prototype(name: str, constraints: str) -> str:
    return f"{name}({constraints}[],{APPROVAL}[],address,bytes,{BALANCE}[])"


def _approve_router_prototype(name: str, meta: bool) -> str:
    meta_arg = f"{ROUTER_META}[]," if meta else ""
    return f"{name}(address,{meta_arg}{BALANCE}[],{APPROVAL}[],address,bytes,{BALANCE}[])"


def _permit_router_prototype(name: str, meta: bool) -> str:
    meta_arg = f"{ROUTER_META}[]," if meta else ""
    return (
        f"{name}(address,{meta_arg}{BALANCE}[],{APPROVAL}[],{PERMIT}[],address,bytes,{BALANCE}[])"
    )


ENTRY_POINTS: tuple[EntryPoint, ...] = (
    EntryPoint(ProxyContract.PROXY, Mode.PRE_POST, False, _proxy_prototype("proxyCall", BALANCE)),
    EntryPoint(
        ProxyContract.PROXY, Mode.DIFFS, False, _proxy_prototype("proxyCallDiffs", BALANCE)
    ),
    EntryPoint(
        ProxyContract.PROXY, Mode.PRE_POST, True, _proxy_prototype("proxyCallMeta", PROXY_META)
    ),
    EntryPoint(
        ProxyContract.PROXY, Mode.DIFFS, True, _proxy_prototype("proxyCallDiffsMeta", PROXY_META)
    ),
    EntryPoint(
        ProxyContract.APPROVE_ROUTER,
        Mode.PRE_POST,
        False,
        _approve_router_prototype("approveProxyCall", meta=False),
    ),
    EntryPoint(
        ProxyContract.APPROVE_ROUTER,
        Mode.DIFFS,
        False,
        _approve_router_prototype("approveProxyCallDiffs", meta=False),
    ),
    EntryPoint(
        ProxyContract.APPROVE_ROUTER,
        Mode.PRE_POST,
        True,
        _approve_router_prototype("approveProxyCallWithMeta", meta=True),
    ),
    EntryPoint(
        ProxyContract.APPROVE_ROUTER,
        Mode.DIFFS,
        True,
        _approve_router_prototype("approveProxyCallDiffsWithMeta", meta=True),
    ),
    EntryPoint(
        ProxyContract.PERMIT_ROUTER,
        Mode.PRE_POST,
        False,
        _permit_router_prototype("permitProxyCall", meta=False),
    ),
    EntryPoint(
        ProxyContract.PERMIT_ROUTER,
        Mode.DIFFS,
        False,
        _permit_router_prototype("permitProxyCallDiffs", meta=False),
    ),
    EntryPoint(
        ProxyContract.PERMIT_ROUTER,
        Mode.PRE_POST,
        True,
        _permit_router_prototype("permitProxyCallWithMeta", meta=True),
    ),
    EntryPoint(
        ProxyContract.PERMIT_ROUTER,
        Mode.DIFFS,
        True,
        _permit_router_prototype("permitProxyCallDiffsWithMeta", meta=True),
    ),
)

_ENTRY_POINTS_BY_KEY = {
    (entry.contract, entry.mode, entry.with_meta): entry for entry in ENTRY_POINTS
}


def get_entry_point(contract: ProxyContract, mode: Mode, *, with_meta: bool) -> EntryPoint:
    return _ENTRY_POINTS_BY_KEY[contract, mode, with_meta]


# Typed reverts of the proxy and its routers, plus the Solidity built-ins
ERROR_PROTOTYPES = {
    "CallFailed": "CallFailed(address,bytes,bytes)",
    "InsufficientBalance": "InsufficientBalance(address,address,int256,uint256)",
    "MaliciousApproveTarget": "MaliciousApproveTarget(address,address)",
    "NegativeApprovalAmount": "NegativeApprovalAmount(int256)",
    "ReentrancyGuardReentrantCall": "ReentrancyGuardReentrantCall()",
    "UnexpectedBalanceDiff": "UnexpectedBalanceDiff(address,address,int256,int256)",
    "InvalidMetadata": "InvalidMetadata(address,string,uint8,string,uint8)",
    "MetadataBalancesLengthMismatch": "MetadataBalancesLengthMismatch(uint256,uint256)",
    "PermitsLengthMismatch": "PermitsLengthMismatch(uint256,uint256)",
    "Error": "Error(string)",
    "Panic": "Panic(uint256)",
}
