"""
Completion notifications
"""
import base64
import logging
from email.mime.text import MIMEText
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)


class GmailNotifier:
    """Sends notifications through the Gmail API"""

    def __init__(self, gmail_service):
        """
        Initialize notifier

        Args:
            gmail_service: Authenticated Gmail API service
        """
        self.gmail = gmail_service

    def send(self, recipient: str, subject: str, body: str) -> bool:
        """
        Send a plain-text email

        Args:
            recipient: Email address
            subject: Subject line
            body: Message body

        Returns:
            True if the message was accepted
        """
        message = MIMEText(body)
        message['to'] = recipient
        message['subject'] = subject
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode('ascii')

        try:
            self.gmail.users().messages().send(userId='me', body={'raw': raw}).execute()
            logger.info(f"Notification sent to {recipient}")
            return True
        except HttpError as e:
            logger.error(f"Error sending notification to {recipient}: {e}")
            return False


class LogNotifier:
    """Writes the notification to the log when no recipient is configured"""

    def send(self, recipient: str, subject: str, body: str) -> bool:
        logger.info(f"{subject}\n{body}")
        return True
