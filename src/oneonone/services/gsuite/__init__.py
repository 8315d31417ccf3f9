"""GSuite integration for outbound email.

Sends notification emails through the Gmail API using a service account
with domain-wide delegation.
"""

from src.oneonone.services.gsuite.auth import GSuiteAuthManager
from src.oneonone.services.gsuite.gmail import GmailService
from src.oneonone.services.gsuite.models import EmailMessage, NotificationKind, SentEmailResult

__all__ = [
    "EmailMessage",
    "GmailService",
    "GSuiteAuthManager",
    "NotificationKind",
    "SentEmailResult",
]
