"""
Per-node operations, one per replication phase

Every operation is idempotent: it checks a marker on the node (destId or
localPhase) and does nothing when the work is already recorded. Provider
errors stay with the folder or file they concern: the item is recorded as a
failure or left unstarred, and the phase carries on.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Type

from tqdm import tqdm

from errors import StructuralAnomalyError
from interfaces import StorageProvider
from job_model import (
    Job, FolderNode, FileNode, FAILED_DEST_ID,
    PHASE_FOLDER_CREATE, PHASE_FOLDER_SHARE, PHASE_FOLDER_STAR, PHASE_FILE_DISCOVER,
    PHASE_FILE_TRANSFER, PHASE_FILE_SHARE, PHASE_FILE_STAR,
)
from logging_config import create_logger
from permissions_migrator import PermissionsMigrator
from time_budget import TimeBudget

logger = logging.getLogger(__name__)
replication_log = create_logger(__name__)


@dataclass
class TransferResult:
    """Outcome of one file transfer"""

    ok: bool
    dest_id: str = ''
    message: str = ''

    @classmethod
    def success(cls, dest_id: str) -> 'TransferResult':
        return cls(ok=True, dest_id=dest_id)

    @classmethod
    def failure(cls, message: str) -> 'TransferResult':
        return cls(ok=False, message=message)


@dataclass
class OperationContext:
    """Everything a phase operation needs besides the node itself"""

    job: Job
    provider: StorageProvider
    budget: TimeBudget
    permissions: PermissionsMigrator
    state_document_id: Optional[str] = None
    show_progress: bool = False


class PhaseOperation:
    """Base class; subclasses implement `process` for one phase"""

    phase: int = -1

    def __init__(self, ctx: OperationContext):
        self.ctx = ctx
        self.job = ctx.job
        self.provider = ctx.provider
        self.budget = ctx.budget

    def apply(self, node: FolderNode) -> bool:
        """Process `node`; folders given up on earlier are passed over"""
        if node.failed:
            node.advance(self.phase)
            return True
        return self.process(node)

    def process(self, node: FolderNode) -> bool:
        raise NotImplementedError

    def _replicate_star(self, source_id: str, dest_id: str) -> bool:
        """Copy the star from source to destination; a failure leaves it unstarred"""
        try:
            starred = self.provider.get_starred(source_id)
            if starred:
                self.provider.set_starred(dest_id, True)
            return starred
        except Exception as e:
            replication_log.warning(f"Star not replicated from {source_id} to {dest_id}: {e}")
            return False

    def _require_dest(self, node: FolderNode):
        if not node.destId:
            raise StructuralAnomalyError(
                f"Folder {node.name} ({node.sourceId}) has no destination during phase {self.phase}"
            )


class FolderCreate(PhaseOperation):
    """Create the destination folder and hand its ID to the children"""

    phase = PHASE_FOLDER_CREATE

    def process(self, node: FolderNode) -> bool:
        if not node.destId:
            if not node.parentId:
                raise StructuralAnomalyError(
                    f"Folder {node.name} ({node.sourceId}) has no created parent"
                )

            try:
                node.destId = self.provider.create_folder(node.name, node.parentId)
            except Exception as e:
                # Transient errors were already retried by the binding
                node.mark_failed()
                self.job.record_failure(node.name, node.sourceId, f"Folder not created: {e}")
                replication_log.warning(f"Giving up on folder {node.name} ({node.sourceId}) "
                                        f"and its contents: {e}")
                node.advance(self.phase)
                return True

            if not self.job.is_root(node):
                self.job.folderCount += 1

        for child in node.folders:
            child.parentId = node.destId

        node.advance(self.phase)
        return True


class FolderShare(PhaseOperation):
    """Copy editors and viewers onto the destination folder"""

    phase = PHASE_FOLDER_SHARE

    def process(self, node: FolderNode) -> bool:
        if node.localPhase >= self.phase:
            return True
        self._require_dest(node)

        result = self.ctx.permissions.replicate_sharing(node.sourceId, node.destId)
        node.editors = list(result['editors'])
        node.viewers = list(result['viewers'])
        node.advance(self.phase)
        return True


class FolderStar(PhaseOperation):
    """Star the destination folder when the source folder is starred"""

    phase = PHASE_FOLDER_STAR

    def process(self, node: FolderNode) -> bool:
        if node.localPhase >= self.phase:
            return True
        self._require_dest(node)

        node.starred = self._replicate_star(node.sourceId, node.destId)
        node.advance(self.phase)
        return True


class FileDiscover(PhaseOperation):
    """List the files of a source folder into the node"""

    phase = PHASE_FILE_DISCOVER

    def process(self, node: FolderNode) -> bool:
        if node.localPhase >= self.phase:
            return True

        try:
            listing = self.provider.list_files(node.sourceId)
        except Exception as e:
            self.job.record_failure(node.name, node.sourceId, f"Files not listed: {e}")
            replication_log.warning(f"Cannot list files of {node.name} ({node.sourceId}): {e}")
            node.advance(self.phase)
            return True

        known = {f.sourceId for f in node.files}
        if self.ctx.state_document_id:
            known.add(self.ctx.state_document_id)

        for file_info in listing:
            if file_info['id'] in known:
                continue
            node.files.append(FileNode(
                name=file_info.get('name', ''),
                sourceId=file_info['id'],
                size=int(file_info.get('size', 0) or 0),
            ))

        logger.debug(f"Discovered {len(node.files)} files in {node.name}")
        node.advance(self.phase)
        return True


class FileTransfer(PhaseOperation):
    """Copy (or move) every pending file into the destination folder"""

    phase = PHASE_FILE_TRANSFER

    def process(self, node: FolderNode) -> bool:
        if node.localPhase >= self.phase:
            return True
        self._require_dest(node)

        pending = [f for f in node.files if not f.destId]

        with tqdm(total=len(pending), desc=f"Transferring {node.name}",
                  disable=not self.ctx.show_progress, leave=False) as progress:
            for file_node in pending:
                if self.budget.expired():
                    return False

                result = self.transfer(node, file_node)
                self._record(file_node, result)
                progress.update(1)

        node.advance(self.phase)
        return True

    def transfer(self, node: FolderNode, file_node: FileNode) -> TransferResult:
        """Run one copy or move; failures come back as a result, not an exception"""
        try:
            if self.job.moveFiles:
                self.provider.move_file(file_node.sourceId, node.destId, node.sourceId)
                return TransferResult.success(file_node.sourceId)

            dest_id = self.provider.copy_file(file_node.sourceId, node.destId, file_node.name)
            return TransferResult.success(dest_id)
        except Exception as e:
            return TransferResult.failure(str(e))

    def _record(self, file_node: FileNode, result: TransferResult):
        if result.ok:
            file_node.destId = result.dest_id
            file_node.advance(self.phase)
            self.job.fileCount += 1
            replication_log.log_file_success(file_node.name, file_node.sourceId)
        else:
            file_node.destId = FAILED_DEST_ID
            self.job.record_failure(file_node.name, file_node.sourceId, result.message)
            replication_log.log_file_failure(file_node.name, file_node.sourceId, result.message)


class _PerFileOperation(PhaseOperation):
    """Applies `apply_file` to each transferred file of a folder"""

    def process(self, node: FolderNode) -> bool:
        if self.job.moveFiles or node.localPhase >= self.phase:
            return True
        self._require_dest(node)

        for file_node in node.files:
            if file_node.localPhase >= self.phase or not file_node.transferred:
                continue
            if self.budget.expired():
                return False

            self.apply_file(file_node)
            file_node.advance(self.phase)

        node.advance(self.phase)
        return True

    def apply_file(self, file_node: FileNode):
        raise NotImplementedError


class FileShare(_PerFileOperation):
    """Copy editors and viewers onto each copied file"""

    phase = PHASE_FILE_SHARE

    def apply_file(self, file_node: FileNode):
        result = self.ctx.permissions.replicate_sharing(file_node.sourceId, file_node.destId)
        file_node.editors = list(result['editors'])
        file_node.viewers = list(result['viewers'])


class FileStar(_PerFileOperation):
    """Star each copied file whose source is starred"""

    phase = PHASE_FILE_STAR

    def apply_file(self, file_node: FileNode):
        # Reads the file's own star, not its folder's; Drive exposes the same
        # `starred` field on files and folders.
        file_node.starred = self._replicate_star(file_node.sourceId, file_node.destId)


OPERATIONS: Dict[int, Type[PhaseOperation]] = {
    PHASE_FOLDER_CREATE: FolderCreate,
    PHASE_FOLDER_SHARE: FolderShare,
    PHASE_FOLDER_STAR: FolderStar,
    PHASE_FILE_DISCOVER: FileDiscover,
    PHASE_FILE_TRANSFER: FileTransfer,
    PHASE_FILE_SHARE: FileShare,
    PHASE_FILE_STAR: FileStar,
}


def operation_for(phase: int, ctx: OperationContext) -> Optional[PhaseOperation]:
    """Instantiate the per-node operation of `phase`, or None for whole-job phases"""
    operation_class = OPERATIONS.get(phase)
    return operation_class(ctx) if operation_class else None
