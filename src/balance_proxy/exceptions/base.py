class BalanceProxyError(Exception):
    """
    Base exception used as the parent class for all exceptions raised by this package.

    Calling code should catch `BalanceProxyError` and derived classes separately before general
    exceptions, e.g.:

    ```
    try:
        await pipeline.prepare(tx, context)
    except OperationAborted:
        ... # user-initiated cancel, not an error
    except SpecificBalanceProxyError:
        ... # handle a specific exception
    except BalanceProxyError:
        ... # handle non-specific package exception
    except Exception:
        ... # handle exceptions raised by 3rd party dependencies or Python built-ins
    ```

    An optional string-formatted message may be attached to the exception and retrieved by accessing
    the `.message` attribute.
    """

    message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
            super().__init__(message)


class BalanceProxyValueError(BalanceProxyError): ...


class BalanceProxyTypeError(BalanceProxyError): ...
