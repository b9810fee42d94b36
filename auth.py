"""
Credentials and API clients for the replicating account
Accepts either a Service Account key or OAuth 2.0 client secrets
"""
import json
import logging
import pickle
from pathlib import Path
from typing import Dict, Optional

from google.auth.transport.requests import Request
from google.auth.exceptions import RefreshError
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT = 'service_account'
OAUTH = 'oauth'
UNKNOWN = 'unknown'


def detect_credential_type(credentials_file: str) -> str:
    """
    Classify a credentials JSON file

    Returns:
        'service_account', 'oauth' or 'unknown'
    """
    try:
        with open(credentials_file, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read credentials {credentials_file}: {e}")
        return UNKNOWN

    if data.get('type') == 'service_account':
        return SERVICE_ACCOUNT
    if data.get('type') == 'authorized_user' or 'installed' in data or 'web' in data:
        return OAUTH
    return UNKNOWN


class GoogleAuthManager:
    """Authenticates once and hands out Drive and Gmail clients"""

    def __init__(self, credentials_file, scopes, token_file=None, delegate_email=None):
        """
        Initialize auth manager

        Args:
            credentials_file: Service Account key or OAuth client secrets JSON
            scopes: OAuth scopes to request
            token_file: Pickled OAuth token cache (OAuth only)
            delegate_email: User to impersonate (Service Account only)
        """
        self.credentials_file = credentials_file
        self.scopes = scopes
        self.token_file = Path(token_file or f"{credentials_file}.token.pickle")
        self.delegate_email = delegate_email
        self.creds = None
        self.auth_type = detect_credential_type(credentials_file)
        self._services: Dict[str, object] = {}

        logger.info(f"Credential type: {self.auth_type} ({credentials_file})")

    def authenticate(self):
        """Load or obtain credentials for the configured scopes"""
        if self.auth_type == SERVICE_ACCOUNT:
            self.creds = self._service_account_credentials()
        else:
            self.creds = self._oauth_credentials()
        return self.creds

    def _service_account_credentials(self):
        creds = service_account.Credentials.from_service_account_file(
            self.credentials_file, scopes=self.scopes
        )
        if self.delegate_email:
            logger.info(f"Impersonating {self.delegate_email}")
            creds = creds.with_subject(self.delegate_email)
        logger.info("✓ Service Account credentials loaded")
        return creds

    def _oauth_credentials(self):
        creds = self._load_token()

        if creds and creds.valid:
            return creds

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
                logger.info("Refreshed OAuth token")
            except RefreshError as e:
                logger.warning(f"Token refresh failed, re-authorizing: {e}")
                creds = None
        else:
            creds = None

        if creds is None:
            flow = InstalledAppFlow.from_client_secrets_file(self.credentials_file, self.scopes)
            creds = flow.run_local_server(port=0)

        self._save_token(creds)
        return creds

    def _load_token(self):
        if not self.token_file.exists():
            return None
        with open(self.token_file, 'rb') as f:
            return pickle.load(f)

    def _save_token(self, creds):
        with open(self.token_file, 'wb') as f:
            pickle.dump(creds, f)
        logger.info(f"OAuth token cached in {self.token_file}")

    def _service(self, name: str, version: str):
        if not self.creds:
            self.authenticate()
        if name not in self._services:
            self._services[name] = build(name, version, credentials=self.creds,
                                         cache_discovery=False)
        return self._services[name]

    def get_drive_service(self):
        return self._service('drive', 'v3')

    def get_gmail_service(self):
        return self._service('gmail', 'v1')

    def test_connection(self) -> Optional[str]:
        """Return the Drive account email, or None if the API does not answer"""
        try:
            about = self.get_drive_service().about().get(fields='user').execute()
        except HttpError as e:
            logger.error(f"Drive connection failed: {e}")
            return None

        email = about.get('user', {}).get('emailAddress', '')
        logger.info(f"Drive connection OK: {email}")
        return email
