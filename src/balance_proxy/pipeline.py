"""
The proxy call pipeline: rewrite, simulate, fund, derive constraints and encode one call to the
balance proxy, then submit it.

Each user-initiated attempt owns a `ProxyCallContext`. Its abort signal is checked at every
suspension point, and closing it discards the derived constraints and collected permits.
"""

import dataclasses
from collections.abc import Mapping
from typing import Any
from weakref import WeakSet

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from balance_proxy.cancellation import AbortSignal
from balance_proxy.chain import ChainReader
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.config import ProxyDeployment, settings
from balance_proxy.constraints import (
    Approval,
    BalanceCheck,
    BalanceConstraint,
    CheckSet,
    DerivedConstraints,
    Mode,
    check_sufficient_balance,
    clamp_slippage,
    derive_constraints,
    funding_amount,
)
from balance_proxy.deployments import get_deployment
from balance_proxy.exceptions.funding import InsufficientAllowance
from balance_proxy.exceptions.proxy import ProxyCallError, StaleCheckSet, UnknownProxyRevert
from balance_proxy.funding import (
    ApprovalEstimate,
    ApprovalOrchestrator,
    FundingDecision,
    FundingStrategy,
    MultisigBridge,
    PendingMultisigTransaction,
    PermitCache,
    PermitSignature,
    ProposedTransaction,
    TokenRequirement,
    TransactionSigner,
    determine_approval_amount,
)
from balance_proxy.logging import logger
from balance_proxy.proxy import ProxyCall, build_proxy_call, build_simulation_call
from balance_proxy.proxy.errors import decode_proxy_revert
from balance_proxy.simulation import (
    OriginalSimulation,
    SimulatedCall,
    SimulationResult,
    TwoPhaseSimulator,
)
from balance_proxy.types import PublisherMixin, Subscriber, TextMessage
from balance_proxy.types.aliases import ChainId
from balance_proxy.universal_router import (
    CalldataRewriter,
    RewriteResult,
    extract_swap_info,
    is_native_input,
)


@dataclasses.dataclass(slots=True, frozen=True)
class Transaction:
    """
    An already-built transaction to route through the balance proxy.
    """

    to: ChecksumAddress
    data: bytes
    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "to", get_checksum_address(self.to))
        object.__setattr__(self, "data", bytes(HexBytes(self.data)))

    @property
    def key(self) -> tuple[ChecksumAddress, bytes, int]:
        return self.to, self.data, self.value


class ProxyCallContext:
    """
    Explicit state for one attempt: who is calling, on which chain, with which check mode and
    slippage, and whether permits or a multisig are in play.
    """

    def __init__(
        self,
        user: str,
        chain_id: ChainId,
        *,
        mode: Mode = Mode.DIFFS,
        slippage: float | None = None,
        use_permit: bool | None = None,
        multisig: MultisigBridge | None = None,
        signal: AbortSignal | None = None,
    ) -> None:
        self.user = get_checksum_address(user)
        self.chain_id = chain_id
        self.mode = mode
        if slippage is None:
            slippage = (
                settings.pipeline.default_slippage_diffs
                if mode is Mode.DIFFS
                else settings.pipeline.default_slippage_pre_post
            )
        self.slippage = clamp_slippage(slippage)
        self.use_permit = settings.pipeline.use_permit_router if use_permit is None else use_permit
        self.multisig = multisig
        self.signal = signal if signal is not None else AbortSignal()
        self.permit_cache = PermitCache()
        self.check_set = CheckSet()

    @property
    def uses_multisig(self) -> bool:
        return self.multisig is not None

    def abort(self, reason: str | None = None) -> None:
        self.signal.abort(reason)
        self.close()

    def close(self) -> None:
        self.check_set.clear()
        self.permit_cache.clear()


@dataclasses.dataclass(slots=True, frozen=True)
class PreparedProxyCall:
    """
    The encoded proxy call and everything it was derived from. Valid only for the source
    transaction's (to, data, value) triple.
    """

    source: Transaction
    proxy_call: ProxyCall
    rewrite: RewriteResult
    original: OriginalSimulation
    estimate: ApprovalEstimate
    funding: FundingDecision
    simulation: SimulationResult
    constraints: DerivedConstraints
    check_set: CheckSet
    balance_check: BalanceCheck | None

    def matches(self, tx: Transaction) -> bool:
        return self.source.key == tx.key


@dataclasses.dataclass(slots=True, frozen=True)
class SubmittedProxyCall:
    tx_hash: HexBytes | None = None
    receipt: Mapping[str, Any] | None = None
    pending: PendingMultisigTransaction | None = None


class ProxyCallPipeline(PublisherMixin):
    """
    Runs one proxy call attempt from an already-built transaction.

    Subscribers attached to the pipeline also receive the messages published by the rewriter,
    the simulator and the funding orchestrator.
    """

    def __init__(
        self,
        reader: ChainReader,
        signer: TransactionSigner,
        *,
        deployment: ProxyDeployment | None = None,
        rewriter: CalldataRewriter | None = None,
        simulator: TwoPhaseSimulator | None = None,
    ) -> None:
        self.reader = reader
        self.signer = signer
        self.deployment = deployment
        self.rewriter = rewriter if rewriter is not None else CalldataRewriter()
        self.simulator = simulator if simulator is not None else TwoPhaseSimulator(reader)
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def subscribe(self, subscriber: Subscriber) -> None:
        super().subscribe(subscriber)
        self.rewriter.subscribe(subscriber)
        self.simulator.subscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        super().unsubscribe(subscriber)
        self.rewriter.unsubscribe(subscriber)
        self.simulator.unsubscribe(subscriber)

    def _milestone(self, text: str) -> None:
        logger.info(text)
        self._notify_subscribers(TextMessage(text))

    def _deployment(self, context: ProxyCallContext) -> ProxyDeployment:
        if self.deployment is not None:
            return self.deployment
        return get_deployment(context.chain_id)

    def _rewrite(
        self, tx: Transaction, deployment: ProxyDeployment, user: ChecksumAddress
    ) -> RewriteResult:
        if deployment.universal_router is None or tx.to != deployment.universal_router:
            logger.info(f"{tx.to} is not the Universal Router, calldata passed through unmodified")
            return RewriteResult(calldata=tx.data, is_router_call=False)
        return self.rewriter.rewrite(tx.data, user)

    async def prepare(self, tx: Transaction, context: ProxyCallContext) -> PreparedProxyCall:
        """
        Derive the balance constraints for `tx` and encode the proxy call enforcing them.
        """

        signal = context.signal
        signal.raise_if_aborted()
        context.check_set.clear()
        deployment = self._deployment(context)
        user = context.user

        rewrite = self._rewrite(tx, deployment, user)
        native_input = rewrite.is_router_call and is_native_input(rewrite.commands, tx.value)
        if native_input:
            logger.info("Native currency input, funded by the call value")

        self._milestone("Simulating the original transaction")
        original = await self.simulator.simulate_original(
            user, SimulatedCall(to=tx.to, data=tx.data, value=tx.value), signal
        )

        swap_info = extract_swap_info(tx.data) if rewrite.is_router_call else None
        estimate = await determine_approval_amount(self.reader, user, original, swap_info)
        signal.raise_if_aborted()
        logger.debug(
            f"Approval estimate: {estimate.amount} of {estimate.token} ({estimate.source.value})"
        )

        requirements = (
            [
                TokenRequirement(
                    token=estimate.token,
                    amount=funding_amount(estimate.amount, context.slippage),
                )
            ]
            if estimate.token is not None and estimate.amount > 0 and not native_input
            else []
        )
        orchestrator = ApprovalOrchestrator(
            self.reader,
            self.signer,
            multisig=context.multisig,
            use_permit=context.use_permit,
        )
        for subscriber in self._subscribers:
            orchestrator.subscribe(subscriber)
        funding = await orchestrator.fund(
            requirements,
            allowance_spender=deployment.approve_router or deployment.balance_proxy,
            permit_spender=deployment.permit_router,
            permit_cache=context.permit_cache,
            signal=signal,
        )

        # The router is the call target for a rewritten swap, and tokens are moved to it directly
        approvals = [
            Approval(
                balance=BalanceConstraint(
                    target=tx.to,
                    token=requirement.token,
                    amount=funding.funded.get(requirement.token, requirement.amount),
                ),
                use_transfer=rewrite.is_router_call,
            )
            for requirement in requirements
        ]
        self._milestone("Simulating the proxy call")
        simulation = await self.simulator.simulate_rewritten(
            user,
            build_simulation_call(
                deployment,
                approvals=approvals,
                target=tx.to,
                data=rewrite.calldata,
                value=tx.value,
                permits=[funding.permits[approval.balance.token] for approval in approvals]
                if funding.strategy is FundingStrategy.PERMIT
                else [],
            ),
            signal,
        )

        gas_price = await self.reader.get_gas_price() if context.mode is Mode.PRE_POST else 0
        signal.raise_if_aborted()
        constraints = derive_constraints(
            simulation,
            user=user,
            call_target=tx.to,
            mode=context.mode,
            slippage=context.slippage,
            gas_price=gas_price,
        )
        check_set = constraints.check_set
        if rewrite.is_router_call:
            check_set = check_set.for_universal_router(tx.to, native_input=native_input)

        balance_check = None
        if constraints.spent is not None:
            balance_check = await check_sufficient_balance(
                self.reader, user, constraints.spent, context.slippage
            )
            signal.raise_if_aborted()

        check_set, permits = self._apply_funding(check_set, funding)
        proxy_call = build_proxy_call(
            deployment,
            check_set=check_set,
            mode=context.mode,
            target=tx.to,
            data=rewrite.calldata,
            value=tx.value,
            permits=permits,
        )
        context.check_set = check_set
        self._milestone(f"Prepared {proxy_call.entry_point.name} call to {proxy_call.to}")

        return PreparedProxyCall(
            source=tx,
            proxy_call=proxy_call,
            rewrite=rewrite,
            original=original,
            estimate=estimate,
            funding=funding,
            simulation=simulation,
            constraints=constraints,
            check_set=check_set,
            balance_check=balance_check,
        )

    @staticmethod
    def _apply_funding(
        check_set: CheckSet, funding: FundingDecision
    ) -> tuple[CheckSet, list[PermitSignature]]:
        """
        Check that each funded amount covers the derived approval, and order the collected
        permits by approval.

        A permit is only valid for the exact value it was signed for, so with permit funding each
        token approval is raised to its signed value.
        """

        if funding.strategy is FundingStrategy.NATIVE:
            return check_set, []

        for approval in check_set.token_approvals():
            funded = funding.funded.get(approval.balance.token, 0)
            if funded < approval.balance.amount:
                raise InsufficientAllowance(
                    token=approval.balance.token,
                    funded=funded,
                    required=approval.balance.amount,
                )

        if funding.strategy is not FundingStrategy.PERMIT:
            return check_set, []

        approvals = [
            approval
            if approval.balance.is_native
            else approval.model_copy(
                update={
                    "balance": approval.balance.model_copy(
                        update={"amount": funding.funded[approval.balance.token]}
                    )
                }
            )
            for approval in check_set.approvals
        ]
        return dataclasses.replace(check_set, approvals=approvals), [
            funding.permits[approval.balance.token] for approval in approvals
        ]

    async def submit(
        self, prepared: PreparedProxyCall, tx: Transaction, context: ProxyCallContext
    ) -> SubmittedProxyCall:
        """
        Submit a prepared proxy call. The transaction must be the one the call was prepared for.
        """

        if not prepared.matches(tx):
            context.check_set.clear()
            raise StaleCheckSet()

        signal = context.signal
        signal.raise_if_aborted()
        proxy_call = prepared.proxy_call

        if context.multisig is not None:
            pending = await context.multisig.propose(
                [
                    ProposedTransaction(
                        to=proxy_call.to, data=proxy_call.data, value=proxy_call.value
                    )
                ]
            )
            self._milestone(f"Proposed proxy call to multisig: {pending.safe_tx_hash}")
            return SubmittedProxyCall(pending=pending)

        tx_hash = await self.signer.send_transaction(
            proxy_call.to, proxy_call.data, proxy_call.value
        )
        signal.raise_if_aborted()
        self._milestone(f"Submitted proxy call {tx_hash.to_0x_hex()}")
        receipt = await self.reader.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise await self._revert_reason(proxy_call, context.user)
        return SubmittedProxyCall(tx_hash=tx_hash, receipt=receipt)

    async def _revert_reason(self, proxy_call: ProxyCall, user: ChecksumAddress) -> ProxyCallError:
        """
        Replay a reverted proxy call to recover its revert data.
        """

        try:
            await self.reader.call(
                proxy_call.to, proxy_call.data, from_=user, value=proxy_call.value
            )
        except ContractLogicError as exc:
            if exc.data is None or not isinstance(exc.data, str | bytes):
                return UnknownProxyRevert(b"")
            return decode_proxy_revert(exc.data)
        return UnknownProxyRevert(b"")
