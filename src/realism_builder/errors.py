from __future__ import annotations


OVERLOADED_MESSAGE = "Gemini is overloaded, try again in a moment"
RATE_LIMITED_MESSAGE = "Rate limited, slow down a bit"
SAFETY_ERROR_MESSAGE = "Blocked by safety filter, try rephrasing"
GENERIC_MESSAGE = "Something went wrong"


class RealismBuilderError(Exception):
    pass


class ImageDecodeError(RealismBuilderError):
    """The source payload could not be decoded as an image."""


class SessionBusyError(RealismBuilderError):
    """A call of the same kind is already outstanding for this session."""


class EmptyMessageError(RealismBuilderError, ValueError):
    pass


class UpstreamError(RealismBuilderError):
    """
    A failure reported by the hosted model service.

    Providers that don't surface the SDK's own error type raise this so the
    retry wrapper and the message map can read a status code.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def status_code_of(exc: BaseException) -> int | None:
    """
    Best-effort numeric status for an upstream failure.

    google-genai's APIError carries `code`; httpx errors carry
    `response.status_code`; our own UpstreamError carries `status_code`.
    """
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def user_message(exc: BaseException) -> str:
    status = status_code_of(exc)
    if status == 503:
        return OVERLOADED_MESSAGE
    if status == 429:
        return RATE_LIMITED_MESSAGE
    if "SAFETY" in str(exc):
        return SAFETY_ERROR_MESSAGE
    return GENERIC_MESSAGE
