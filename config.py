"""
Configuration module for the Drive folder replicator
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _parse_list(value: str) -> list:
    """Split a comma separated setting into a list of non-empty items"""
    return [item.strip() for item in value.split(',') if item.strip()]


def _parse_mapping(value: str) -> dict:
    """Parse 'old.example.com=new.example.com,...' into a dict"""
    mapping = {}
    for pair in _parse_list(value):
        if '=' not in pair:
            continue
        source, dest = pair.split('=', 1)
        mapping[source.strip()] = dest.strip()
    return mapping


class Config:
    """Configuration settings for folder replication"""

    # OAuth 2.0 Scopes Required
    SCOPES = [
        'https://www.googleapis.com/auth/drive',
        'https://www.googleapis.com/auth/gmail.send',
    ]

    # Credentials
    CREDENTIALS_FILE = os.getenv('CREDENTIALS_FILE', 'credentials.json')
    TOKEN_FILE = os.getenv('TOKEN_FILE', 'token.pickle')
    DELEGATE_EMAIL = os.getenv('DELEGATE_EMAIL', '')

    # Replication source and target
    SOURCE_FOLDER_ID = os.getenv('SOURCE_FOLDER_ID', '')
    DEST_PARENT_ID = os.getenv('DEST_PARENT_ID', '')
    MOVE_FILES = os.getenv('MOVE_FILES', 'False').lower() == 'true'
    SKIP_PHASES = _parse_list(os.getenv('SKIP_PHASES', ''))
    DOMAIN_MAPPING = _parse_mapping(os.getenv('DOMAIN_MAPPING', ''))

    # Invocation window
    MAX_RUNTIME_SECONDS = int(os.getenv('MAX_RUNTIME_SECONDS', '300'))
    RETRY_DELAY_SECONDS = int(os.getenv('RETRY_DELAY_SECONDS', '60'))
    SCHEDULE_FILE = os.getenv('SCHEDULE_FILE', 'replication_schedule.json')

    # State document
    STATE_BACKEND = os.getenv('STATE_BACKEND', 'local')
    STATE_DOCUMENT_NAME = os.getenv('STATE_DOCUMENT_NAME', 'replication_state.json')
    STATE_FILE = os.getenv('STATE_FILE', STATE_DOCUMENT_NAME)

    # Notification
    NOTIFY_EMAIL = os.getenv('NOTIFY_EMAIL', '')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', 'replication.log')
    SHOW_PROGRESS = os.getenv('SHOW_PROGRESS', 'False').lower() == 'true'

    # Output
    REPORT_DIR = Path(os.getenv('REPORT_DIR', 'reports'))

    @classmethod
    def validate(cls):
        """Validate required configuration"""
        required_vars = [
            ('SOURCE_FOLDER_ID', cls.SOURCE_FOLDER_ID),
            ('DEST_PARENT_ID', cls.DEST_PARENT_ID),
        ]

        missing = [name for name, value in required_vars if not value]

        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        if cls.STATE_BACKEND not in ('local', 'drive'):
            raise ValueError(f"Unknown STATE_BACKEND: {cls.STATE_BACKEND}")

        if cls.MAX_RUNTIME_SECONDS <= 0:
            raise ValueError("MAX_RUNTIME_SECONDS must be positive")

        # Check credentials file exists
        if not Path(cls.CREDENTIALS_FILE).exists():
            raise FileNotFoundError(f"Credentials file not found: {cls.CREDENTIALS_FILE}")

        return True
