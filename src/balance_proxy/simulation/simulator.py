import dataclasses
from collections.abc import Callable
from typing import TYPE_CHECKING, Self
from weakref import WeakSet

import tenacity
from eth_typing import ChecksumAddress

from balance_proxy.cancellation import AbortSignal
from balance_proxy.chain import ChainReader
from balance_proxy.config import settings
from balance_proxy.exceptions.cancellation import OperationAborted
from balance_proxy.exceptions.simulation import SimulationFailed, SimulationReverted
from balance_proxy.logging import logger
from balance_proxy.simulation.tracer import simulate_asset_changes
from balance_proxy.simulation.types import OriginalSimulation, SimulatedCall, SimulationResult
from balance_proxy.types.concrete import PublisherMixin, SimulationAttemptFailed, Subscriber


@dataclasses.dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    Fixed-count, fixed-delay retry settings for one simulation phase.
    """

    max_attempts: int = 100
    delay: float = 0.5

    @classmethod
    def from_settings(cls) -> Self:
        return cls(
            max_attempts=settings.pipeline.simulation_attempts,
            delay=settings.pipeline.simulation_delay,
        )

    def retrying(
        self,
        signal: AbortSignal,
        *,
        retry_failed_status: bool,
        before_sleep: Callable[[tenacity.RetryCallState], None] | None = None,
    ) -> tenacity.AsyncRetrying:
        retry: tenacity.retry_base = tenacity.retry_if_not_exception_type(OperationAborted)
        if retry_failed_status:
            retry = retry | tenacity.retry_if_result(
                lambda result: isinstance(result, SimulationResult) and not result.succeeded
            )

        return tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self.max_attempts),
            wait=tenacity.wait_fixed(self.delay),
            retry=retry,
            sleep=signal.sleep,
            before_sleep=before_sleep,
        )


class TwoPhaseSimulator(PublisherMixin):
    """
    Runs the two simulations of a proxy call attempt.

    The first phase simulates the untouched transaction. It is expected to fail whenever the
    transaction depends on a signature the dry run cannot satisfy, so failure is reported as a
    result instead of an exception.

    The second phase simulates the rewritten call through the proxy contract that will execute it.
    Its result is authoritative: if it cannot be obtained within the allowed attempts,
    `SimulationFailed` is raised, and if the call reverts, `SimulationReverted` is raised.
    """

    def __init__(
        self,
        reader: ChainReader,
        *,
        policy: RetryPolicy | None = None,
        rewritten_policy: RetryPolicy | None = None,
    ) -> None:
        self.reader = reader
        self.policy = policy if policy is not None else RetryPolicy.from_settings()
        self.rewritten_policy = rewritten_policy if rewritten_policy is not None else self.policy
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def _report_retry(self, phase: str) -> Callable[[tenacity.RetryCallState], None]:
        def before_sleep(retry_state: tenacity.RetryCallState) -> None:
            if TYPE_CHECKING:
                assert retry_state.outcome is not None
            if retry_state.outcome.failed:
                reason = repr(retry_state.outcome.exception())
            else:
                reason = retry_state.outcome.result().error or "call failed"
            logger.debug(
                f"{phase} simulation attempt {retry_state.attempt_number} failed: {reason}"
            )
            self._notify_subscribers(
                SimulationAttemptFailed(
                    phase=phase, attempt=retry_state.attempt_number, reason=reason
                )
            )

        return before_sleep

    async def _attempt(
        self, account: ChecksumAddress, call: SimulatedCall, signal: AbortSignal
    ) -> SimulationResult:
        signal.raise_if_aborted()
        result = await simulate_asset_changes(self.reader, account, [call])
        signal.raise_if_aborted()
        return result

    async def simulate_original(
        self,
        account: ChecksumAddress,
        call: SimulatedCall,
        signal: AbortSignal | None = None,
    ) -> OriginalSimulation:
        """
        Simulate the untouched transaction, retrying on errors and on failure status. Never raises
        except for `OperationAborted`.
        """

        signal = signal if signal is not None else AbortSignal()
        retrying = self.policy.retrying(
            signal, retry_failed_status=True, before_sleep=self._report_retry("original")
        )
        try:
            result = await retrying(self._attempt, account, call, signal)
        except tenacity.RetryError:
            logger.info(
                f"Original transaction simulation failed after {self.policy.max_attempts} "
                "attempts; continuing without it"
            )
            return OriginalSimulation(
                success=False, result=None, attempts=self.policy.max_attempts
            )

        attempts = retrying.statistics.get("attempt_number", 1)
        logger.info(f"Original transaction simulation succeeded (attempt {attempts})")
        return OriginalSimulation(success=True, result=result, attempts=attempts)

    async def simulate_rewritten(
        self,
        account: ChecksumAddress,
        call: SimulatedCall,
        signal: AbortSignal | None = None,
    ) -> SimulationResult:
        """
        Simulate the rewritten call through the proxy, retrying on errors only.
        """

        signal = signal if signal is not None else AbortSignal()
        retrying = self.rewritten_policy.retrying(
            signal, retry_failed_status=False, before_sleep=self._report_retry("rewritten")
        )
        try:
            result: SimulationResult = await retrying(self._attempt, account, call, signal)
        except tenacity.RetryError as exc:
            raise SimulationFailed(attempts=self.rewritten_policy.max_attempts) from exc

        if not result.succeeded:
            logger.warning(f"Proxy simulation returned failure status: {result.error}")
            raise SimulationReverted(error=result.error)

        return result
