"""Failure classification for provider operations

Provider calls never raise for expected failures. They return an empty
record/page or False, and the provider remembers the message, the last HTTP
status and one of these kinds.
"""

from enum import Enum


class FailureKind(str, Enum):
    NONE = "none"
    # Local precondition failures, detected before any network call
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_INPUT = "invalid_input"
    BUSY = "busy"
    UNSUPPORTED = "unsupported"
    # Transport failures
    TRANSPORT = "transport"
    HTTP = "http"
    # Response did not have the expected shape
    PARSE = "parse"
    # owner/name could not be turned into a backend identifier
    RESOLUTION = "resolution"

    @property
    def is_local(self) -> bool:
        """True when the failure was detected without touching the network"""
        return self in (
            FailureKind.NOT_AUTHENTICATED,
            FailureKind.INVALID_INPUT,
            FailureKind.BUSY,
            FailureKind.UNSUPPORTED,
        )


NOT_AUTHENTICATED_MESSAGE = "Not authenticated"
