import dataclasses
import enum

import pydantic
from eth_typing import ChecksumAddress

from balance_proxy.constants import ZERO_ADDRESS, is_native_currency
from balance_proxy.validation.evm_values import ValidatedAddress, ValidatedInt256, ValidatedUint8


class Mode(enum.Enum):
    """
    Constraint semantics enforced by the proxy call.
    """

    DIFFS = "diffs"  # the balance change since the call started must satisfy the constraint
    PRE_POST = "pre/post"  # the final absolute balance must be at least the constraint


class BalanceConstraint(pydantic.BaseModel, frozen=True):
    """
    A signed balance requirement for `token` held by `target`. Positive amounts must be gained (or
    held, in pre/post mode); negative amounts bound the allowed loss. The native currency is
    represented by the zero address.
    """

    target: ValidatedAddress
    token: ValidatedAddress
    amount: ValidatedInt256

    @pydantic.field_validator("token", mode="after")
    @classmethod
    def normalize_native(cls, token: ChecksumAddress) -> ChecksumAddress:
        return ZERO_ADDRESS if is_native_currency(token) else token

    @property
    def is_native(self) -> bool:
        return self.token == ZERO_ADDRESS

    def as_abi(self) -> tuple[str, str, int]:
        return (self.target, self.token, self.amount)


class Approval(pydantic.BaseModel, frozen=True):
    """
    An amount the proxy makes available to the call target, either by approving it
    (`use_transfer=False`) or by transferring the tokens to it before the call.
    """

    balance: BalanceConstraint
    use_transfer: bool = False

    def as_abi(self) -> tuple[tuple[str, str, int], bool]:
        return (self.balance.as_abi(), self.use_transfer)


class TokenMetadata(pydantic.BaseModel, frozen=True):
    symbol: str
    decimals: ValidatedUint8


@dataclasses.dataclass(slots=True)
class CheckSet:
    """
    The balance constraints submitted with one proxy call. Only valid for the transaction it was
    derived from.
    """

    approvals: list[Approval] = dataclasses.field(default_factory=list)
    withdrawals: list[BalanceConstraint] = dataclasses.field(default_factory=list)
    diffs: list[BalanceConstraint] = dataclasses.field(default_factory=list)
    post_transfers: list[BalanceConstraint] = dataclasses.field(default_factory=list)
    metadata: dict[ChecksumAddress, TokenMetadata] = dataclasses.field(default_factory=dict)

    def clear(self) -> None:
        self.approvals.clear()
        self.withdrawals.clear()
        self.diffs.clear()
        self.post_transfers.clear()
        self.metadata.clear()

    @property
    def is_empty(self) -> bool:
        return not (self.approvals or self.withdrawals or self.diffs or self.post_transfers)

    def balances(self, mode: Mode) -> list[BalanceConstraint]:
        """
        The constraint list checked by the proxy for the given mode.
        """
        match mode:
            case Mode.DIFFS:
                return self.diffs
            case Mode.PRE_POST:
                return self.post_transfers

    def token_approvals(self) -> list[Approval]:
        return [approval for approval in self.approvals if not approval.balance.is_native]

    def for_universal_router(self, router: ChecksumAddress, *, native_input: bool) -> "CheckSet":
        """
        Adjust the constraints for a Universal Router call. Tokens are transferred to the router
        ahead of the call instead of being approved, and swap output is delivered straight to the
        user, so there is nothing to withdraw. A native input is funded by the call value alone.
        """

        approvals = (
            []
            if native_input
            else [
                Approval(
                    balance=approval.balance.model_copy(update={"target": router}),
                    use_transfer=True,
                )
                for approval in self.token_approvals()
            ]
        )
        return CheckSet(
            approvals=approvals,
            withdrawals=[],
            diffs=list(self.diffs),
            post_transfers=list(self.post_transfers),
            metadata=dict(self.metadata),
        )
