"""SQLAlchemy models package."""

from recurring_match.models.income import RECURRING_SALARY, IncomeSource
from recurring_match.models.match import MATCH_UNIQUE_CONSTRAINT, ObligationMatch
from recurring_match.models.notification import (
    PENDING_NOTIFICATION_KEY,
    PENDING_NOTIFICATION_WHERE,
    Notification,
    NotificationPreference,
    NotificationType,
)
from recurring_match.models.obligation import Obligation, RecurrenceType
from recurring_match.models.partnership import Account, Partnership, PartnershipMember
from recurring_match.models.transaction import Transaction

__all__ = [
    "Account",
    "IncomeSource",
    "MATCH_UNIQUE_CONSTRAINT",
    "Notification",
    "NotificationPreference",
    "NotificationType",
    "Obligation",
    "ObligationMatch",
    "PENDING_NOTIFICATION_KEY",
    "PENDING_NOTIFICATION_WHERE",
    "Partnership",
    "PartnershipMember",
    "RECURRING_SALARY",
    "RecurrenceType",
    "Transaction",
]
