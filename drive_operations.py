"""
Drive operations module for folder, file, permission and star management
"""
import logging
import io
from typing import List, Dict, Optional
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

EDITOR_ROLES = ('writer', 'fileOrganizer', 'organizer')
VIEWER_ROLES = ('reader', 'commenter')

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


def _is_transient(exc: BaseException) -> bool:
    """Rate limits, server errors and dropped connections are worth retrying"""
    if isinstance(exc, HttpError):
        return exc.resp.status in TRANSIENT_STATUS_CODES
    return isinstance(exc, ConnectionError)


drive_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True
)


def _escape_query(value: str) -> str:
    return value.replace('\\', '\\\\').replace("'", "\\'")


class DriveOperations:
    """Google Drive v3 binding of the storage provider interface"""

    def __init__(self, drive_service, page_size: int = 100):
        """
        Initialize Drive operations

        Args:
            drive_service: Authenticated Drive API service
            page_size: Number of results per list page
        """
        self.drive = drive_service
        self.page_size = page_size

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    @drive_retry
    def get_folder(self, folder_id: str) -> Dict:
        """
        Get folder metadata

        Args:
            folder_id: Folder ID

        Returns:
            Dictionary with id and name

        Raises:
            HttpError: If the folder cannot be read
        """
        return self.drive.files().get(
            fileId=folder_id,
            fields='id,name,mimeType',
            supportsAllDrives=True
        ).execute()

    def list_subfolders(self, folder_id: str) -> List[Dict]:
        """List direct subfolders of a folder"""
        query = (f"'{_escape_query(folder_id)}' in parents and "
                 f"mimeType = '{FOLDER_MIME_TYPE}' and trashed = false")
        return self._list(query, 'nextPageToken,files(id,name)')

    def list_files(self, folder_id: str) -> List[Dict]:
        """
        List direct non-folder children of a folder

        Args:
            folder_id: Folder ID

        Returns:
            List of {'id', 'name', 'size'} dictionaries; size is 0 for
            native Google documents, which report none
        """
        query = (f"'{_escape_query(folder_id)}' in parents and "
                 f"mimeType != '{FOLDER_MIME_TYPE}' and trashed = false")
        files = self._list(query, 'nextPageToken,files(id,name,size,mimeType)')
        for file_info in files:
            file_info['size'] = int(file_info.get('size', 0) or 0)
        return files

    @drive_retry
    def _list_page(self, query: str, fields: str, page_token: Optional[str]) -> Dict:
        return self.drive.files().list(
            q=query,
            pageSize=self.page_size,
            pageToken=page_token,
            fields=fields,
            orderBy='name',
            supportsAllDrives=True,
            includeItemsFromAllDrives=True
        ).execute()

    def _list(self, query: str, fields: str) -> List[Dict]:
        items = []
        page_token = None

        while True:
            response = self._list_page(query, fields, page_token)
            batch = response.get('files', [])
            items.extend(batch)

            logger.debug(f"Retrieved {len(batch)} items (total: {len(items)})")

            page_token = response.get('nextPageToken')
            if not page_token:
                break

        return items

    @drive_retry
    def find_file_by_name(self, folder_id: str, name: str) -> Optional[str]:
        """Return the ID of the first file called `name` in a folder, or None"""
        query = (f"'{_escape_query(folder_id)}' in parents and "
                 f"name = '{_escape_query(name)}' and trashed = false")
        response = self.drive.files().list(
            q=query,
            pageSize=1,
            fields='files(id,name)',
            supportsAllDrives=True,
            includeItemsFromAllDrives=True
        ).execute()

        files = response.get('files', [])
        return files[0]['id'] if files else None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    @drive_retry
    def create_folder(self, folder_name: str, parent_id: str) -> str:
        """
        Create a folder in Drive

        Args:
            folder_name: Folder name
            parent_id: Parent folder ID

        Returns:
            Created folder ID
        """
        file_metadata = {
            'name': folder_name,
            'mimeType': FOLDER_MIME_TYPE,
            'parents': [parent_id]
        }

        folder = self.drive.files().create(
            body=file_metadata,
            fields='id,name',
            supportsAllDrives=True
        ).execute()

        logger.info(f"Created folder: {folder_name} (ID: {folder.get('id')})")
        return folder['id']

    @drive_retry
    def copy_file(self, source_file_id: str, dest_folder_id: str, new_name: str) -> str:
        """
        Copy a file into a folder

        Args:
            source_file_id: Source file ID
            dest_folder_id: Destination parent folder ID
            new_name: Name of the copy

        Returns:
            Copied file ID

        Raises:
            HttpError: If the copy is refused
        """
        copied_file = self.drive.files().copy(
            fileId=source_file_id,
            body={'name': new_name, 'parents': [dest_folder_id]},
            fields='id,name',
            supportsAllDrives=True
        ).execute()

        logger.debug(f"Copied file: {new_name} (ID: {copied_file.get('id')})")
        return copied_file['id']

    @drive_retry
    def move_file(self, file_id: str, dest_folder_id: str, source_folder_id: str):
        """
        Move a file between folders; the file keeps its ID

        Args:
            file_id: File ID
            dest_folder_id: Folder to add as parent
            source_folder_id: Folder to remove as parent
        """
        self.drive.files().update(
            fileId=file_id,
            addParents=dest_folder_id,
            removeParents=source_folder_id,
            fields='id,parents',
            supportsAllDrives=True
        ).execute()

        logger.debug(f"Moved file {file_id} to {dest_folder_id}")

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    @drive_retry
    def _list_permissions(self, item_id: str) -> List[Dict]:
        permissions = []
        page_token = None

        while True:
            response = self.drive.permissions().list(
                fileId=item_id,
                pageToken=page_token,
                fields='nextPageToken,permissions(id,type,role,emailAddress)',
                supportsAllDrives=True
            ).execute()

            permissions.extend(response.get('permissions', []))

            page_token = response.get('nextPageToken')
            if not page_token:
                break

        return permissions

    def _emails_with_roles(self, item_id: str, roles) -> List[str]:
        emails = []
        for perm in self._list_permissions(item_id):
            email = perm.get('emailAddress')
            if perm.get('type') in ('user', 'group') and perm.get('role') in roles and email:
                emails.append(email)
        return emails

    def get_editors(self, item_id: str) -> List[str]:
        """Emails of users and groups that can edit (owner excluded)"""
        return self._emails_with_roles(item_id, EDITOR_ROLES)

    def get_viewers(self, item_id: str) -> List[str]:
        """Emails of users and groups that can view or comment"""
        return self._emails_with_roles(item_id, VIEWER_ROLES)

    def add_editors(self, item_id: str, emails: List[str]) -> Dict:
        return self._add_permissions(item_id, emails, 'writer')

    def add_viewers(self, item_id: str, emails: List[str]) -> Dict:
        return self._add_permissions(item_id, emails, 'reader')

    @drive_retry
    def _create_permission(self, item_id: str, email: str, role: str):
        self.drive.permissions().create(
            fileId=item_id,
            body={'type': 'user', 'role': role, 'emailAddress': email},
            sendNotificationEmail=False,
            supportsAllDrives=True
        ).execute()

    def _add_permissions(self, item_id: str, emails: List[str], role: str) -> Dict:
        """
        Grant `role` on an item to each email

        Returns:
            Result dictionary with granted emails and per-email errors
        """
        result = {'granted': [], 'failed': []}

        for email in emails:
            try:
                self._create_permission(item_id, email, role)
                result['granted'].append(email)
            except HttpError as e:
                if e.resp.status == 404:
                    error = "User not found in destination domain"
                elif e.resp.status == 403:
                    error = "Permission denied"
                else:
                    error = str(e)
                result['failed'].append({'email': email, 'error': error})
                logger.warning(f"Failed to grant {role} on {item_id} to {email}: {error}")

        return result

    # ------------------------------------------------------------------
    # Stars
    # ------------------------------------------------------------------

    @drive_retry
    def get_starred(self, item_id: str) -> bool:
        response = self.drive.files().get(
            fileId=item_id,
            fields='starred',
            supportsAllDrives=True
        ).execute()
        return bool(response.get('starred', False))

    @drive_retry
    def set_starred(self, item_id: str, starred: bool):
        self.drive.files().update(
            fileId=item_id,
            body={'starred': starred},
            fields='id,starred',
            supportsAllDrives=True
        ).execute()

    # ------------------------------------------------------------------
    # State document content
    # ------------------------------------------------------------------

    @drive_retry
    def download_content(self, file_id: str) -> bytes:
        """
        Download file content

        Args:
            file_id: File ID

        Returns:
            Raw file bytes
        """
        request = self.drive.files().get_media(fileId=file_id)
        file_buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(file_buffer, request)

        done = False
        while not done:
            _, done = downloader.next_chunk()

        return file_buffer.getvalue()

    @drive_retry
    def upload_content(self, content: bytes, file_name: str, mime_type: str,
                       parent_id: str) -> str:
        """Create a new file with the given content and return its ID"""
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        file = self.drive.files().create(
            body={'name': file_name, 'parents': [parent_id]},
            media_body=media,
            fields='id,name',
            supportsAllDrives=True
        ).execute()

        logger.info(f"Uploaded: {file_name} (ID: {file.get('id')})")
        return file['id']

    @drive_retry
    def update_content(self, file_id: str, content: bytes, mime_type: str):
        """Overwrite the content of an existing file"""
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        self.drive.files().update(
            fileId=file_id,
            media_body=media,
            fields='id',
            supportsAllDrives=True
        ).execute()
