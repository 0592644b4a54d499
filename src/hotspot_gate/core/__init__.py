"""
Core utilities shared by every hotspot-gate component: the error taxonomy
and structured logging.
"""

from .exceptions import (
    AuthenticationFailed,
    ConnectError,
    ConnectTimeout,
    ErrorCode,
    GatewayError,
    InvalidDecision,
    InvalidProfile,
    MalformedSentence,
    ProvisioningFatal,
    ProvisioningRejected,
    ReadError,
    ReadTimeout,
    RouterError,
    SessionStateError,
    UnknownToken,
    WriteError,
)
from .structured_logger import TraceContext, configure_logging, get_logger

__all__ = [
    'AuthenticationFailed',
    'ConnectError',
    'ConnectTimeout',
    'ErrorCode',
    'GatewayError',
    'InvalidDecision',
    'InvalidProfile',
    'MalformedSentence',
    'ProvisioningFatal',
    'ProvisioningRejected',
    'ReadError',
    'ReadTimeout',
    'RouterError',
    'SessionStateError',
    'UnknownToken',
    'WriteError',
    'TraceContext',
    'configure_logging',
    'get_logger',
]
