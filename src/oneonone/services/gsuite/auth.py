"""Service-account credentials for the notification mailbox.

The service account impersonates the sender mailbox through domain-wide
delegation with the gmail.send scope only. One Gmail client is built per
mailbox and reused for every notification.
"""

from __future__ import annotations

from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"


class GSuiteAuthManager:
    """Builds and caches Gmail clients for delegated mailboxes.

    Args:
        service_account_file: Path to the service account JSON key.
        delegated_user_email: Default mailbox to send from.
    """

    def __init__(self, service_account_file: str, delegated_user_email: str) -> None:
        self._key_file = service_account_file
        self._default_mailbox = delegated_user_email
        self._clients: dict[str, Any] = {}

    def get_gmail_service(self, user_email: str | None = None) -> Any:
        mailbox = user_email or self._default_mailbox
        client = self._clients.get(mailbox)
        if client is None:
            logger.info("gsuite.building_gmail_client", mailbox=mailbox)
            credentials = service_account.Credentials.from_service_account_file(
                self._key_file, scopes=[GMAIL_SEND_SCOPE]
            ).with_subject(mailbox)
            client = build("gmail", "v1", credentials=credentials, cache_discovery=False)
            self._clients[mailbox] = client
        return client
