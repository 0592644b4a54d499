"""
Token ledger: access request records and the approval state machine.
"""

from .ledger import DEFAULT_PROFILES, TokenLedger, Transition, new_token
from .models import TERMINAL_STATES, RequestRecord, RequestState, can_transition

__all__ = [
    'DEFAULT_PROFILES',
    'TERMINAL_STATES',
    'RequestRecord',
    'RequestState',
    'TokenLedger',
    'Transition',
    'can_transition',
    'new_token',
]
