"""Exception types raised by the local inference layer."""


class LocalInferenceError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(LocalInferenceError):
    """One or more configuration rules failed.

    Raised before any network activity and never retried.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class BackendUnavailable(LocalInferenceError):
    """The backend did not answer the availability probe."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Local AI service is not available at {endpoint}")


class RequestFailed(LocalInferenceError):
    """The chat endpoint returned a non-2xx status or a malformed payload."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class Cancelled(LocalInferenceError):
    """A generation was cancelled cooperatively."""


class GenerationInProgress(LocalInferenceError):
    """A second message was sent while a generation was still pending."""


class ConnectionInProgress(LocalInferenceError):
    """``start_session`` was called while an earlier start was still probing."""


class StreamParseWarning(UserWarning):
    """A single streamed record could not be parsed. Logged, never raised."""

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"Failed to parse stream record {line[:80]!r}: {reason}")
