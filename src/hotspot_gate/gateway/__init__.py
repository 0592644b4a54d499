"""
Approval gateway: the operations HTTP routes and the Telegram webhook call.
"""

from .decisions import Approve, Decision, Deny, parse_decision
from .service import ApprovalGateway, DecisionOutcome, RouterProvisioner, describe

__all__ = [
    'ApprovalGateway',
    'Approve',
    'Decision',
    'DecisionOutcome',
    'Deny',
    'RouterProvisioner',
    'describe',
    'parse_decision',
]
