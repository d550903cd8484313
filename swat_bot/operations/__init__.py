"""
Operations Layer

This package holds the rank, quota and promotion rules. Operations are
synchronous and never touch the database: they mutate the member they are
given and hand back outcomes carrying unsaved log entries.

Architecture:
- Database layer: Pure data access (swat_bot.database)
- Operations layer: Business rules and record-level workflows
- Service layer: Async sessions that load, run an operation and commit

Each operations module focuses on a specific domain:
- QuotaEngine: Weekly quota derivation, recompute and weekly reset
- PromotionEngine: Eligibility state machine and promotion actions
- MemberOperations: Submissions, HR adjustments, unit transfer, deletion
"""

from .member_operations import AdjustmentAction, AdjustmentRequest, MemberOperations, SubmissionRequest
from .promotion_engine import EligibilityState, PromotionEngine
from .quota_engine import QuotaEngine

__all__ = [
    'AdjustmentAction', 'AdjustmentRequest', 'EligibilityState', 'MemberOperations',
    'PromotionEngine', 'QuotaEngine', 'SubmissionRequest',
]
