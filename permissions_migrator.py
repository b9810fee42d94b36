"""
Permissions migration module
Copies editors and viewers from a source item to its destination copy
"""
import logging
from typing import Dict, List, Optional

from interfaces import StorageProvider

logger = logging.getLogger(__name__)


class PermissionsMigrator:
    """Handles replication of folder/file sharing"""

    def __init__(self, provider: StorageProvider,
                 domain_mapping: Optional[Dict[str, str]] = None):
        """
        Initialize permissions migrator

        Args:
            provider: Storage provider used for both source and destination
            domain_mapping: Map of source email domain to destination domain
        """
        self.provider = provider
        self.domain_mapping = domain_mapping or {}

    def replicate_sharing(self, source_id: str, dest_id: str) -> Dict:
        """
        Copy editors and viewers from source to destination

        Args:
            source_id: Source item ID
            dest_id: Destination item ID

        Returns:
            Result dictionary with the source editor/viewer lists and
            migrated/failed counts
        """
        result = {
            'editors': [],
            'viewers': [],
            'migrated': 0,
            'failed': 0,
        }

        try:
            editors = self.provider.get_editors(source_id)
            viewers = self.provider.get_viewers(source_id)
        except Exception as e:
            logger.warning(f"Cannot read sharing of {source_id}: {e}")
            result['error'] = str(e)
            return result

        result['editors'] = editors
        result['viewers'] = viewers

        for emails, grant in ((editors, self.provider.add_editors),
                              (viewers, self.provider.add_viewers)):
            if not emails:
                continue
            try:
                outcome = grant(dest_id, self._map_emails(emails)) or {}
            except Exception as e:
                logger.warning(f"Cannot grant access on {dest_id}: {e}")
                outcome = {'failed': emails}
            result['migrated'] += len(outcome.get('granted', []))
            result['failed'] += len(outcome.get('failed', []))

        if result['failed']:
            logger.warning(f"Sharing on {dest_id}: {result['failed']} grant(s) failed")
        logger.debug(f"Sharing on {dest_id}: {result['migrated']} grant(s) migrated")

        return result

    def _map_emails(self, emails: List[str]) -> List[str]:
        return [self._map_email_to_dest_domain(email) for email in emails]

    def _map_email_to_dest_domain(self, email: str) -> str:
        """Map email from source domain to destination domain"""
        if not email or '@' not in email or not self.domain_mapping:
            return email

        local_part, domain = email.split('@', 1)

        dest_domain = self.domain_mapping.get(domain)
        if dest_domain:
            return f"{local_part}@{dest_domain}"

        # Return original if no mapping
        return email
