"""
RouterOS API client subset
==========================

Just enough of the MikroTik binary API to log in and add a hotspot user:

- codec:        length prefixes, words, sentences, reply parsing (pure)
- session:      one socket, one request/reply cycle, login handshake
- provisioning: connect + login + ``/ip/hotspot/user/add``
"""

from .codec import (
    Reply,
    decode_length,
    encode_length,
    encode_sentence,
    encode_word,
    parse_reply,
    try_parse_sentence,
)
from .provisioning import RouterTarget, build_user_add, provision_access
from .session import ApiSession, SessionState

__all__ = [
    'ApiSession',
    'Reply',
    'RouterTarget',
    'SessionState',
    'build_user_add',
    'decode_length',
    'encode_length',
    'encode_sentence',
    'encode_word',
    'parse_reply',
    'provision_access',
    'try_parse_sentence',
]
