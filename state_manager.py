"""
State management for the persisted replication job document
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from errors import StateDocumentError
from job_model import Job

logger = logging.getLogger(__name__)

STATE_MIME_TYPE = 'application/json'


class StateManager:
    """Loads and saves the single job document for one source folder"""

    def __init__(self, source_id: str = '', dest_parent_id: str = '',
                 move_files: bool = False):
        """
        Initialize state manager

        Args:
            source_id: Source folder ID, recorded on a fresh job
            dest_parent_id: Destination parent folder ID, recorded on a fresh job
            move_files: Move rather than copy files (fixed when the job is created)
        """
        self.source_id = source_id
        self.dest_parent_id = dest_parent_id
        self.move_files = move_files
        # Drive file ID of the document when it is stored among the replicated files
        self.document_id: Optional[str] = None

    def load(self) -> Job:
        """
        Load the persisted job, or create a fresh one

        Returns:
            Job instance

        Raises:
            StateDocumentError: If the document exists but cannot be read or parsed
        """
        raw = self._read()

        if raw is None:
            logger.info("No job document found - starting a new replication job")
            return Job.create(self.source_id, self.dest_parent_id, self.move_files)

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            job = Job.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            raise StateDocumentError(f"Job document is corrupt: {e}") from e

        logger.info(f"Loaded job document at phase {job.phase}")
        return job

    def save(self, job: Job):
        """Serialize the whole job and overwrite the persisted document"""
        content = json.dumps(job.to_dict(), indent=2, ensure_ascii=False)
        self._write(content.encode('utf-8'))
        logger.debug(f"Saved job document at phase {job.phase}")

    def _read(self) -> Optional[bytes]:
        raise NotImplementedError

    def _write(self, content: bytes):
        raise NotImplementedError


class LocalStateManager(StateManager):
    """Job document kept as a JSON file on local disk"""

    def __init__(self, state_file: str, **kwargs):
        super().__init__(**kwargs)
        self.state_file = Path(state_file)

    def _read(self) -> Optional[bytes]:
        if not self.state_file.exists():
            return None
        try:
            return self.state_file.read_bytes()
        except OSError as e:
            raise StateDocumentError(f"Cannot read {self.state_file}: {e}") from e

    def _write(self, content: bytes):
        self.state_file.parent.mkdir(parents=True, exist_ok=True)

        # Write next to the target, then rename over it
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.state_file.parent), prefix=f".{self.state_file.name}.", suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.state_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class DriveStateManager(StateManager):
    """Job document kept as a JSON file inside the source root folder"""

    def __init__(self, drive_ops, folder_id: str, document_name: str, **kwargs):
        """
        Initialize Drive-backed state manager

        Args:
            drive_ops: DriveOperations instance
            folder_id: Folder holding the document (the source root)
            document_name: File name of the document
        """
        super().__init__(**kwargs)
        self.drive_ops = drive_ops
        self.folder_id = folder_id
        self.document_name = document_name

    def _read(self) -> Optional[bytes]:
        try:
            self.document_id = self.drive_ops.find_file_by_name(self.folder_id, self.document_name)
            if self.document_id is None:
                return None
            return self.drive_ops.download_content(self.document_id)
        except Exception as e:
            raise StateDocumentError(f"Cannot read job document {self.document_name}: {e}") from e

    def _write(self, content: bytes):
        if self.document_id is None:
            self.document_id = self.drive_ops.find_file_by_name(self.folder_id, self.document_name)

        if self.document_id is None:
            self.document_id = self.drive_ops.upload_content(
                content, self.document_name, STATE_MIME_TYPE, self.folder_id
            )
        else:
            self.drive_ops.update_content(self.document_id, content, STATE_MIME_TYPE)


def state_manager_from_config(config, drive_ops=None) -> StateManager:
    """
    Build the state manager selected by STATE_BACKEND

    Args:
        config: Configuration object
        drive_ops: DriveOperations, required for the drive backend

    Returns:
        StateManager instance
    """
    common = {
        'source_id': config.SOURCE_FOLDER_ID,
        'dest_parent_id': config.DEST_PARENT_ID,
        'move_files': config.MOVE_FILES,
    }

    if config.STATE_BACKEND == 'drive':
        if drive_ops is None:
            raise ValueError("Drive state backend requires Drive operations")
        return DriveStateManager(drive_ops, config.SOURCE_FOLDER_ID,
                                 config.STATE_DOCUMENT_NAME, **common)

    return LocalStateManager(config.STATE_FILE, **common)
