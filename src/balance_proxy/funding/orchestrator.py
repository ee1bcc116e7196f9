"""
Funding of the proxy call's input tokens: existing allowance, EIP-2612 permit, or an on-chain
approval transaction.
"""

import dataclasses
import enum
from collections.abc import Sequence
from weakref import WeakSet

from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from balance_proxy.cancellation import AbortSignal
from balance_proxy.chain import ChainReader
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.config import settings
from balance_proxy.constants import is_native_currency
from balance_proxy.erc20 import get_allowance, get_token_balance
from balance_proxy.exceptions.funding import ApprovalReverted
from balance_proxy.functions import encode_function_calldata
from balance_proxy.funding.permit import (
    PermitCache,
    PermitSignature,
    default_deadline,
    generate_permit_signature,
    supports_permit,
)
from balance_proxy.funding.signers import (
    MultisigBridge,
    PendingMultisigTransaction,
    ProposedTransaction,
    TransactionSigner,
)
from balance_proxy.logging import logger
from balance_proxy.simulation.types import OriginalSimulation
from balance_proxy.types import FundingStepMessage, PublisherMixin, Subscriber
from balance_proxy.universal_router.calldata import SwapInfo


class FundingStrategy(enum.Enum):
    NATIVE = "native"
    ALLOWANCE = "allowance"
    PERMIT = "permit"
    APPROVAL = "approval"


class ApprovalSource(enum.Enum):
    SIMULATION = "simulation"
    CALLDATA = "calldata"
    BALANCE = "balance"
    NONE = "none"


@dataclasses.dataclass(slots=True, frozen=True)
class ApprovalEstimate:
    token: ChecksumAddress | None
    amount: int
    source: ApprovalSource


@dataclasses.dataclass(slots=True, frozen=True)
class TokenRequirement:
    token: ChecksumAddress
    amount: int


@dataclasses.dataclass(slots=True, frozen=True)
class FundingDecision:
    strategy: FundingStrategy
    spender: ChecksumAddress | None = None
    permits: dict[ChecksumAddress, PermitSignature] = dataclasses.field(default_factory=dict)
    funded: dict[ChecksumAddress, int] = dataclasses.field(default_factory=dict)
    approval_tx_hashes: tuple[HexBytes, ...] = ()
    pending_multisig: tuple[PendingMultisigTransaction, ...] = ()


async def determine_approval_amount(
    reader: ChainReader,
    account: ChecksumAddress,
    original: OriginalSimulation,
    swap_info: SwapInfo | None,
) -> ApprovalEstimate:
    """
    Estimate the input token and amount before the authoritative simulation.

    The negative non-native change of a successful original simulation is preferred. Otherwise the
    amount encoded in the router calldata is used, and when that is zero (an open V4 settle) the
    user's whole balance of the input token.
    """

    if original.success and original.result is not None:
        for change in original.result.asset_changes:
            if change.diff < 0 and not change.token.is_native:
                return ApprovalEstimate(
                    token=change.token.address,
                    amount=abs(change.diff),
                    source=ApprovalSource.SIMULATION,
                )

    if swap_info is None or is_native_currency(swap_info.input_token):
        return ApprovalEstimate(token=None, amount=0, source=ApprovalSource.NONE)

    if swap_info.input_amount > 0:
        return ApprovalEstimate(
            token=swap_info.input_token,
            amount=swap_info.input_amount,
            source=ApprovalSource.CALLDATA,
        )

    balance = await get_token_balance(reader, swap_info.input_token, account)
    return ApprovalEstimate(
        token=swap_info.input_token, amount=balance, source=ApprovalSource.BALANCE
    )


class ApprovalOrchestrator(PublisherMixin):
    """
    Decides how the proxy obtains the user's input tokens and carries out that decision.

    Tokens are handled one at a time, since each wallet prompt must be acknowledged before the
    next is shown. The abort signal is checked around every suspension point.
    """

    def __init__(
        self,
        reader: ChainReader,
        signer: TransactionSigner,
        *,
        multisig: MultisigBridge | None = None,
        use_permit: bool = True,
        permit_lifetime: int | None = None,
    ) -> None:
        self.reader = reader
        self.signer = signer
        self.multisig = multisig
        self.use_permit = use_permit
        self.permit_lifetime = (
            permit_lifetime if permit_lifetime is not None else settings.pipeline.permit_lifetime
        )
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def _step(self, step: str, token: ChecksumAddress, detail: str = "") -> None:
        logger.info(f"Funding {token}: {step} {detail}".rstrip())
        self._notify_subscribers(FundingStepMessage(step=step, token=token, detail=detail))

    async def _all_support_permit(
        self, requirements: Sequence[TokenRequirement], signal: AbortSignal
    ) -> bool:
        for requirement in requirements:
            signal.raise_if_aborted()
            if not await supports_permit(self.reader, requirement.token):
                logger.debug(f"{requirement.token} has no permit support")
                return False
        return True

    async def fund(
        self,
        requirements: Sequence[TokenRequirement],
        *,
        allowance_spender: ChecksumAddress,
        permit_spender: ChecksumAddress | None,
        permit_cache: PermitCache,
        signal: AbortSignal,
    ) -> FundingDecision:
        """
        Fund each required token for the coming proxy call.

        Returns immediately, without any prompt or transaction, when the existing allowances to
        `allowance_spender` already cover every requirement.
        """

        owner = self.signer.address
        requirements = [
            dataclasses.replace(requirement, token=get_checksum_address(requirement.token))
            for requirement in requirements
            if not is_native_currency(requirement.token)
        ]
        if not requirements:
            return FundingDecision(strategy=FundingStrategy.NATIVE)

        allowances: dict[ChecksumAddress, int] = {}
        insufficient: list[tuple[TokenRequirement, int]] = []
        for requirement in requirements:
            signal.raise_if_aborted()
            allowance = await get_allowance(
                self.reader, requirement.token, owner, allowance_spender
            )
            allowances[requirement.token] = allowance
            if allowance < requirement.amount:
                insufficient.append((requirement, allowance))

        if not insufficient:
            logger.info("Existing allowances cover every input token")
            return FundingDecision(
                strategy=FundingStrategy.ALLOWANCE, spender=allowance_spender, funded=allowances
            )

        if (
            self.use_permit
            and self.multisig is None
            and permit_spender is not None
            and await self._all_support_permit(requirements, signal)
        ):
            return await self._collect_permits(requirements, permit_spender, permit_cache, signal)

        return await self._approve(insufficient, allowances, allowance_spender, signal)

    async def _collect_permits(
        self,
        requirements: Sequence[TokenRequirement],
        spender: ChecksumAddress,
        permit_cache: PermitCache,
        signal: AbortSignal,
    ) -> FundingDecision:
        deadline = default_deadline(self.permit_lifetime)
        permits: dict[ChecksumAddress, PermitSignature] = {}
        for requirement in requirements:
            signal.raise_if_aborted()
            cached = permit_cache.get(requirement.token, spender, requirement.amount)
            if cached is not None:
                self._step("permit", requirement.token, "reusing signature")
                permits[requirement.token] = cached
                continue

            self._step(
                "permit", requirement.token, f"requesting signature for {requirement.amount}"
            )
            signature = await generate_permit_signature(
                self.reader,
                self.signer,
                requirement.token,
                spender,
                requirement.amount,
                deadline,
            )
            signal.raise_if_aborted()
            permit_cache.put(requirement.token, spender, requirement.amount, signature)
            permits[requirement.token] = signature

        return FundingDecision(
            strategy=FundingStrategy.PERMIT,
            spender=spender,
            permits=permits,
            funded={requirement.token: requirement.amount for requirement in requirements},
        )

    async def _approve(
        self,
        insufficient: Sequence[tuple[TokenRequirement, int]],
        allowances: dict[ChecksumAddress, int],
        spender: ChecksumAddress,
        signal: AbortSignal,
    ) -> FundingDecision:
        owner = self.signer.address
        funded = dict(allowances)
        tx_hashes: list[HexBytes] = []
        pending: list[PendingMultisigTransaction] = []

        for requirement, allowance in insufficient:
            signal.raise_if_aborted()
            amount = requirement.amount
            balance = await get_token_balance(self.reader, requirement.token, owner)
            if balance < amount:
                logger.warning(
                    f"Balance {balance} of {requirement.token} is below the required {amount}; "
                    "approving the full balance"
                )
                amount = balance
            if amount <= allowance:
                funded[requirement.token] = allowance
                continue

            data = encode_function_calldata("approve(address,uint256)", [spender, amount])
            signal.raise_if_aborted()

            if self.multisig is not None:
                self._step("approve", requirement.token, f"proposing {amount} to multisig")
                pending.append(
                    await self.multisig.propose(
                        [ProposedTransaction(to=requirement.token, data=data)]
                    )
                )
                funded[requirement.token] = amount
                continue

            self._step("approve", requirement.token, f"sending approval for {amount}")
            tx_hash = await self.signer.send_transaction(requirement.token, data)
            signal.raise_if_aborted()
            receipt = await self.reader.wait_for_transaction_receipt(tx_hash)
            signal.raise_if_aborted()
            if receipt["status"] != 1:
                raise ApprovalReverted(token=requirement.token, tx_hash=tx_hash.to_0x_hex())

            self._step("approved", requirement.token, tx_hash.to_0x_hex())
            tx_hashes.append(tx_hash)
            funded[requirement.token] = amount

        return FundingDecision(
            strategy=FundingStrategy.APPROVAL,
            spender=spender,
            funded=funded,
            approval_tx_hashes=tuple(tx_hashes),
            pending_multisig=tuple(pending),
        )
