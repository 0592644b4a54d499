"""
Custom Exceptions for hotspot-gate
==================================

Structured error handling lets the HTTP and Telegram surfaces react to an
error by type rather than by parsing strings.

Error Codes:
- 1xxx: Client errors (unknown token, bad profile, bad callback data)
- 2xxx: Router authentication errors
- 3xxx: Router transport errors (connect, read, write, timeouts)
- 4xxx: Router command errors (trap, fatal, malformed replies)
- 5xxx: System errors (internal, unexpected)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes for user-friendly messages"""

    # 1xxx: Client Errors
    UNKNOWN_TOKEN = 1001
    INVALID_PROFILE = 1002
    INVALID_DECISION = 1003

    # 2xxx: Authentication Errors
    AUTHENTICATION_FAILED = 2001

    # 3xxx: Transport Errors
    CONNECT_TIMEOUT = 3001
    CONNECT_FAILED = 3002
    WRITE_FAILED = 3003
    READ_TIMEOUT = 3004
    READ_FAILED = 3005

    # 4xxx: Command Errors
    MALFORMED_SENTENCE = 4001
    INVALID_SESSION_STATE = 4002
    PROVISIONING_REJECTED = 4003
    PROVISIONING_FATAL = 4004

    # 5xxx: System Errors
    INTERNAL_ERROR = 5001


class GatewayError(Exception):
    """Base exception for all hotspot-gate errors"""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'retryable': self.retryable,
            'details': self.details
        }

    def user_message(self) -> str:
        """Get user-friendly error message based on error code"""
        code_messages = {
            ErrorCode.UNKNOWN_TOKEN: "Unknown token",
            ErrorCode.INVALID_PROFILE: "Profile not allowed",
            ErrorCode.INVALID_DECISION: "Unrecognised decision",
            ErrorCode.AUTHENTICATION_FAILED: "Router rejected the API credentials",
            ErrorCode.CONNECT_TIMEOUT: "Router did not answer in time. Please try again",
            ErrorCode.CONNECT_FAILED: "Router unreachable",
            ErrorCode.WRITE_FAILED: "Connection to router lost",
            ErrorCode.READ_TIMEOUT: "Router reply timed out. Please try again",
            ErrorCode.READ_FAILED: "Connection to router lost",
            ErrorCode.MALFORMED_SENTENCE: "Router sent an unreadable reply",
            ErrorCode.INVALID_SESSION_STATE: "Router session not ready",
            ErrorCode.PROVISIONING_REJECTED: self.message,
            ErrorCode.PROVISIONING_FATAL: "Router closed the session",
            ErrorCode.INTERNAL_ERROR: "Internal server error",
        }
        return f"Error {self.error_code}: {code_messages.get(self.error_code, self.message)}"


# =============================================================================
# ROUTER ERRORS
# =============================================================================


class RouterError(GatewayError):
    """Base class for failures talking to the router API"""


class ConnectTimeout(RouterError):
    """Raised when no connection is established within the connect timeout"""

    retryable = True

    def __init__(self, host: str, port: int, timeout: float):
        super().__init__(
            f"Timed out connecting to {host}:{port} after {timeout}s",
            ErrorCode.CONNECT_TIMEOUT,
            {'host': host, 'port': port, 'timeout': timeout},
        )


class ConnectError(RouterError):
    """Raised on refusal, DNS or network failure while connecting"""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            f"Cannot connect to {host}:{port}: {reason}",
            ErrorCode.CONNECT_FAILED,
            {'host': host, 'port': port},
        )


class WriteError(RouterError):
    """Raised when a sentence cannot be written to the socket"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.WRITE_FAILED, details)


class ReadTimeout(RouterError):
    """Raised when no complete sentence arrives within the read timeout"""

    retryable = True

    def __init__(self, timeout: float, buffered: int = 0):
        super().__init__(
            f"No complete reply within {timeout}s",
            ErrorCode.READ_TIMEOUT,
            {'timeout': timeout, 'buffered_bytes': buffered},
        )


class ReadError(RouterError):
    """Raised when the peer closes or resets the connection mid-reply"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.READ_FAILED, details)


class MalformedSentence(RouterError):
    """Raised when the receive buffer cannot be a valid sentence"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.MALFORMED_SENTENCE, details)


class SessionStateError(RouterError):
    """Raised when an operation is issued in the wrong session state"""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} while session is {state}",
            ErrorCode.INVALID_SESSION_STATE,
            {'operation': operation, 'state': state},
        )


class AuthenticationFailed(RouterError):
    """Raised when /login does not end in !done"""

    def __init__(self, message: str, reply: list[list[str]] | None = None):
        super().__init__(message, ErrorCode.AUTHENTICATION_FAILED, {'reply': reply or []})
        self.reply = reply or []


class ProvisioningRejected(RouterError):
    """Raised when the router answers the user-add command with !trap"""

    def __init__(self, message: str, reply: list[list[str]] | None = None):
        super().__init__(message, ErrorCode.PROVISIONING_REJECTED, {'reply': reply or []})
        self.reply = reply or []


class ProvisioningFatal(RouterError):
    """Raised when the router answers with !fatal and drops the session"""

    def __init__(self, message: str, reply: list[list[str]] | None = None):
        super().__init__(message, ErrorCode.PROVISIONING_FATAL, {'reply': reply or []})
        self.reply = reply or []


# =============================================================================
# LEDGER ERRORS
# =============================================================================


class UnknownToken(GatewayError):
    """Raised when a status-changing operation names a token the ledger never issued"""

    def __init__(self, token: str):
        super().__init__(f"Unknown token: {token}", ErrorCode.UNKNOWN_TOKEN, {'token': token})
        self.token = token


class InvalidProfile(GatewayError):
    """Raised when an approval names a profile outside the allowed set"""

    def __init__(self, profile: str | None, allowed: tuple[str, ...] | list[str] = ()):
        super().__init__(
            f"Profile not allowed: {profile!r} (allowed: {', '.join(allowed)})",
            ErrorCode.INVALID_PROFILE,
            {'profile': profile, 'allowed': list(allowed)},
        )
        self.profile = profile


class InvalidDecision(GatewayError):
    """Raised when approval callback data cannot be parsed"""

    def __init__(self, data: str):
        super().__init__(f"Invalid decision data: {data!r}", ErrorCode.INVALID_DECISION, {'data': data})
