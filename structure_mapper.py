"""
Folder structure mapping module
Captures the source folder tree before any copying starts
"""
import logging
from typing import List, Set

from errors import SourceUnavailableError, StructuralAnomalyError
from interfaces import StorageProvider
from job_model import Job, FolderNode, PHASE_NAMES

logger = logging.getLogger(__name__)


class DriveStructureMapper:
    """Maps the source folder hierarchy into FolderNode objects"""

    def __init__(self, provider: StorageProvider):
        """
        Initialize structure mapper

        Args:
            provider: Storage provider (DriveOperations or compatible)
        """
        self.provider = provider

    def discover(self, source_id: str, dest_parent_id: str) -> FolderNode:
        """
        Map the folder tree below a source folder

        Only folders are enumerated; files are discovered per folder in a
        later phase. The walk runs to completion in one go.

        Args:
            source_id: Source root folder ID
            dest_parent_id: Destination folder that will hold the replica root

        Returns:
            Root FolderNode

        Raises:
            SourceUnavailableError: If the source root cannot be read
            StructuralAnomalyError: If a folder is reached twice
        """
        logger.info(f"Mapping folder structure below {source_id}")

        try:
            root_info = self.provider.get_folder(source_id)
        except Exception as e:
            raise SourceUnavailableError(f"Source folder {source_id} is unreachable: {e}") from e

        root = FolderNode(
            name=root_info.get('name', ''),
            sourceId=source_id,
            parentId=dest_parent_id,
        )

        seen = {source_id}
        self._map_children(root, seen)

        logger.info(f"Mapped {len(seen)} folders")
        return root

    def _map_children(self, node: FolderNode, seen: Set[str]):
        """Recursively attach subfolders to `node`"""
        for child_info in self.provider.list_subfolders(node.sourceId):
            child_id = child_info['id']

            if child_id in seen:
                raise StructuralAnomalyError(
                    f"Folder {child_id} appears more than once below {node.sourceId}"
                )
            seen.add(child_id)

            child = FolderNode(name=child_info.get('name', ''), sourceId=child_id)
            node.folders.append(child)
            self._map_children(child, seen)


def format_tree(job: Job) -> str:
    """Human-readable summary of a job and its folder tree"""
    lines = [
        "=" * 80,
        f"Replication job - phase {job.phase} ({PHASE_NAMES.get(job.phase, 'unknown')})",
        f"Started: {job.start}",
        f"Folders created: {job.folderCount}",
        f"Files transferred: {job.fileCount}",
        f"Failures: {job.failureCount}",
        "=" * 80,
    ]

    for root in job.tree:
        _write_tree(lines, root, 0)

    if job.failures:
        lines.append("")
        lines.append("Failures:")
        for failure in job.failures:
            lines.append(f"  {failure.name} ({failure.sourceId}): {failure.message}")

    return "\n".join(lines)


def _write_tree(lines: List[str], node: FolderNode, indent: int):
    """Recursively write tree structure"""
    prefix = "  " * indent
    status = node.destId or 'pending'
    lines.append(f"{prefix}[{node.name}] -> {status}")

    for file_node in node.files:
        lines.append(f"{prefix}  - {file_node.name} -> {file_node.destId or 'pending'}")

    for child in node.folders:
        _write_tree(lines, child, indent + 1)
