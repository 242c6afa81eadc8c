# NimbusFlags/nimbus_sdk/errors/exceptions.py
"""Error types raised inside the NimbusFlags server SDK.

Evaluation errors never leave the SDK: the evaluator folds them into the
``reason`` of an :class:`~nimbus_sdk.services.evaluator.EvalDetail`.
Synchronization errors are logged and only reach the host through the
bounded start wait of :class:`~nimbus_sdk.services.client_service.NimbusClient`.
"""


from __future__ import annotations


class NimbusError(Exception):
    """Base class for every SDK error.

    Attributes:
        detail: Human-readable description of the error.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class JsonError(NimbusError):
    """Raised when a repository payload cannot be parsed or validated.

    Attributes:
        body: The offending raw body.
        cause: The underlying parse/validation error.
    """

    def __init__(self, body: str, cause: Exception) -> None:
        super().__init__(f"invalid json: {body} error: {cause}")
        self.body = body
        self.cause = cause


class UrlError(NimbusError):
    """Raised for a misconfigured endpoint URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"invalid url: {url}")
        self.url = url


class HttpError(NimbusError):
    """Raised when the toggles endpoint cannot be reached."""

    def __init__(self, message: str) -> None:
        super().__init__(f"http error: {message}")


class EvalError(NimbusError):
    """Generic evaluation failure, used when no detail was requested."""

    def __init__(self) -> None:
        super().__init__("evaluation error")


class EvalDetailError(NimbusError):
    """Evaluation failure carrying a diagnostic message (detail mode)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PrerequisiteError(NimbusError):
    """A prerequisite could not be resolved (as opposed to not satisfied)."""
    pass


class PrerequisiteDepthOverflow(PrerequisiteError):
    """Raised when a prerequisite chain exceeds the maximum depth."""

    def __init__(self) -> None:
        super().__init__("prerequisite depth overflow")


class PrerequisiteNotExist(PrerequisiteError):
    """Raised when a prerequisite references an unknown toggle.

    Attributes:
        key: The missing toggle key.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"prerequisite {key} not exist")
        self.key = key
