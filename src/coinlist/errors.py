"""Error taxonomy for a single market-data fetch."""


class FetchError(Exception):
    """Base class for every reason a fetch did not produce a coin list.

    Each subclass carries a default, user-facing message so the UI can show
    `str(error)` in an alert without knowing the concrete type.
    """

    default_message = "The market data could not be loaded."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidURLError(FetchError):
    """The request URL failed validation. No network call was made."""

    default_message = "The market data URL is invalid."


class ServerError(FetchError):
    """The server answered with a status code other than 200."""

    default_message = "The server returned an unexpected response."

    def __init__(self, status_code: int | None = None, message: str | None = None) -> None:
        self.status_code = status_code
        if message is None and status_code is not None:
            message = f"{self.default_message} (HTTP {status_code})"
        super().__init__(message)


class InvalidDataError(FetchError):
    """The response body could not be decoded into coin records."""

    default_message = "The server returned data in an unexpected format."


class UnknownFetchError(FetchError):
    """Wraps any other failure, such as a connection error or a cancellation."""

    default_message = "An unknown error occurred while loading market data."

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"{self.default_message} ({detail})")
