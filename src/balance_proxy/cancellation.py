import asyncio

from balance_proxy.exceptions.cancellation import OperationAborted


class AbortSignal:
    """
    A cancellation token shared by every step of one proxy call attempt. Once aborted it stays
    aborted; each suspension point checks it and raises `OperationAborted`.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str | None = None) -> None:
        if not self.aborted:
            self.reason = reason
            self._event.set()

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise OperationAborted(self.reason)

    async def sleep(self, seconds: float) -> None:
        """
        Sleep for the given time, waking early and raising `OperationAborted` if aborted.
        """

        self.raise_if_aborted()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return
        self.raise_if_aborted()
