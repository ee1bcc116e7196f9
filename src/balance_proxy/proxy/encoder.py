import dataclasses
from collections.abc import Sequence
from typing import Any

from eth_typing import ChecksumAddress

from balance_proxy.config import ProxyDeployment
from balance_proxy.constraints.types import Approval, BalanceConstraint, CheckSet, Mode
from balance_proxy.erc20 import NATIVE_DECIMALS, NATIVE_SYMBOL
from balance_proxy.exceptions import BalanceProxyValueError
from balance_proxy.exceptions.proxy import PermitsLengthMismatch
from balance_proxy.functions import encode_function_calldata
from balance_proxy.funding.permit import PermitSignature
from balance_proxy.logging import logger
from balance_proxy.proxy.abi import EntryPoint, ProxyContract, get_entry_point
from balance_proxy.simulation.types import SimulatedCall


@dataclasses.dataclass(slots=True, frozen=True)
class ProxyCall:
    """
    A fully encoded call to one proxy entry point.
    """

    to: ChecksumAddress
    data: bytes
    value: int
    entry_point: EntryPoint


def select_proxy_contract(
    deployment: ProxyDeployment,
    check_set: CheckSet,
    permits: Sequence[PermitSignature] = (),
) -> ProxyContract:
    """
    The permit router executes calls funded by permits. Token approvals go through the approve
    router when one is deployed, and everything else calls the proxy directly.
    """

    if permits:
        return ProxyContract.PERMIT_ROUTER
    if check_set.token_approvals() and deployment.approve_router is not None:
        return ProxyContract.APPROVE_ROUTER
    return ProxyContract.PROXY


def contract_address(deployment: ProxyDeployment, contract: ProxyContract) -> ChecksumAddress:
    match contract:
        case ProxyContract.PROXY:
            address = deployment.balance_proxy
        case ProxyContract.APPROVE_ROUTER:
            address = deployment.approve_router
        case ProxyContract.PERMIT_ROUTER:
            address = deployment.permit_router

    if address is None:
        raise BalanceProxyValueError(message=f"No {contract.value} address in the deployment")
    return address


def _token_metadata(check_set: CheckSet, constraint: BalanceConstraint) -> tuple[str, int]:
    if constraint.is_native:
        return NATIVE_SYMBOL, NATIVE_DECIMALS
    try:
        metadata = check_set.metadata[constraint.token]
    except KeyError:
        raise BalanceProxyValueError(
            message=f"No symbol and decimals recorded for {constraint.token}"
        ) from None
    return metadata.symbol, metadata.decimals


def encode_proxy_call(
    entry_point: EntryPoint,
    *,
    balance_proxy: ChecksumAddress,
    check_set: CheckSet,
    target: ChecksumAddress,
    data: bytes,
    permits: Sequence[PermitSignature] = (),
) -> bytes:
    """
    Encode the calldata for the given entry point from the check set. The constraint list is
    chosen by the entry point's mode.
    """

    balances = check_set.balances(entry_point.mode)
    approvals = [approval.as_abi() for approval in check_set.approvals]
    withdrawals = [withdrawal.as_abi() for withdrawal in check_set.withdrawals]

    args: list[Any]
    match entry_point.contract:
        case ProxyContract.PROXY:
            constraints = (
                [
                    (balance.as_abi(), *_token_metadata(check_set, balance))
                    for balance in balances
                ]
                if entry_point.with_meta
                else [balance.as_abi() for balance in balances]
            )
            args = [constraints, approvals, target, data, withdrawals]
        case ProxyContract.APPROVE_ROUTER | ProxyContract.PERMIT_ROUTER:
            args = [balance_proxy]
            if entry_point.with_meta:
                args.append([_token_metadata(check_set, balance) for balance in balances])
            args.extend([[balance.as_abi() for balance in balances], approvals])
            if entry_point.contract is ProxyContract.PERMIT_ROUTER:
                if len(permits) != len(approvals):
                    raise PermitsLengthMismatch(
                        permits_length=len(permits), approvals_length=len(approvals)
                    )
                args.append([permit.as_abi() for permit in permits])
            args.extend([target, data, withdrawals])

    return encode_function_calldata(entry_point.prototype, args)


def build_proxy_call(
    deployment: ProxyDeployment,
    *,
    check_set: CheckSet,
    mode: Mode,
    target: ChecksumAddress,
    data: bytes,
    value: int = 0,
    permits: Sequence[PermitSignature] = (),
    with_meta: bool = True,
) -> ProxyCall:
    """
    Select exactly one entry point for the funding outcome and mode, and encode the call to it.
    """

    contract = select_proxy_contract(deployment, check_set, permits)
    entry_point = get_entry_point(contract, mode, with_meta=with_meta)
    logger.info(f"Encoding {entry_point.name} on the {contract.value}")
    return ProxyCall(
        to=contract_address(deployment, contract),
        data=encode_proxy_call(
            entry_point,
            balance_proxy=deployment.balance_proxy,
            check_set=check_set,
            target=target,
            data=data,
            permits=permits,
        ),
        value=value,
        entry_point=entry_point,
    )


def build_simulation_call(
    deployment: ProxyDeployment,
    *,
    approvals: Sequence[Approval],
    target: ChecksumAddress,
    data: bytes,
    value: int = 0,
    permits: Sequence[PermitSignature] = (),
) -> SimulatedCall:
    """
    The call simulated to measure the real balance changes: the diffs-with-metadata entry point of
    the contract that will execute, carrying only the approvals (and permits), with no constraints
    and no withdrawals.
    """

    check_set = CheckSet(approvals=list(approvals))
    proxy_call = build_proxy_call(
        deployment,
        check_set=check_set,
        mode=Mode.DIFFS,
        target=target,
        data=data,
        value=value,
        permits=permits,
    )
    return SimulatedCall(to=proxy_call.to, data=proxy_call.data, value=value)
