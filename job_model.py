"""
In-memory model of a replication job and its folder tree

The job document is persisted as JSON with camelCase keys so it stays
readable for manual inspection and recovery.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List

# Phase indices, in execution order
PHASE_DISCOVERY = 0
PHASE_FOLDER_CREATE = 1
PHASE_FOLDER_SHARE = 2
PHASE_FOLDER_STAR = 3
PHASE_FILE_DISCOVER = 4
PHASE_FILE_TRANSFER = 5
PHASE_FILE_SHARE = 6
PHASE_FILE_STAR = 7
PHASE_FINISH = 8
PHASE_DONE = 9

PHASE_NAMES = {
    PHASE_DISCOVERY: 'discovery',
    PHASE_FOLDER_CREATE: 'folder_create',
    PHASE_FOLDER_SHARE: 'folder_share',
    PHASE_FOLDER_STAR: 'folder_star',
    PHASE_FILE_DISCOVER: 'file_discover',
    PHASE_FILE_TRANSFER: 'file_transfer',
    PHASE_FILE_SHARE: 'file_share',
    PHASE_FILE_STAR: 'file_star',
    PHASE_FINISH: 'finish',
    PHASE_DONE: 'done',
}

# destId of a file or folder that could not be replicated; never retried
FAILED_DEST_ID = 'FAILED'


@dataclass
class FailureRecord:
    """One file or folder that could not be replicated"""

    name: str
    sourceId: str
    message: str

    def to_dict(self) -> Dict:
        return {'name': self.name, 'sourceId': self.sourceId, 'message': self.message}

    @classmethod
    def from_dict(cls, data: Dict) -> 'FailureRecord':
        return cls(
            name=data.get('name', ''),
            sourceId=data.get('sourceId', ''),
            message=data.get('message', ''),
        )


@dataclass
class FileNode:
    """A file inside a replicated folder"""

    name: str
    sourceId: str
    destId: str = ''
    size: int = 0
    starred: bool = False
    localPhase: int = 0
    editors: List[str] = field(default_factory=list)
    viewers: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.destId == FAILED_DEST_ID

    @property
    def transferred(self) -> bool:
        return bool(self.destId) and not self.failed

    def advance(self, phase: int):
        """Raise localPhase to `phase`; never lowers it"""
        self.localPhase = max(self.localPhase, phase)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'sourceId': self.sourceId,
            'destId': self.destId,
            'size': self.size,
            'starred': self.starred,
            'localPhase': self.localPhase,
            'editors': list(self.editors),
            'viewers': list(self.viewers),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'FileNode':
        return cls(
            name=data.get('name', ''),
            sourceId=data['sourceId'],
            destId=data.get('destId', ''),
            size=int(data.get('size', 0) or 0),
            starred=bool(data.get('starred', False)),
            localPhase=int(data.get('localPhase', 0)),
            editors=list(data.get('editors', [])),
            viewers=list(data.get('viewers', [])),
        )


@dataclass
class FolderNode:
    """A folder in the replicated hierarchy; owns its subfolders and files"""

    name: str
    sourceId: str
    parentId: str = ''
    destId: str = ''
    localPhase: int = 0
    starred: bool = False
    folders: List['FolderNode'] = field(default_factory=list)
    files: List[FileNode] = field(default_factory=list)
    editors: List[str] = field(default_factory=list)
    viewers: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.destId == FAILED_DEST_ID

    def advance(self, phase: int):
        """Raise localPhase to `phase`; never lowers it"""
        self.localPhase = max(self.localPhase, phase)

    def mark_failed(self):
        """Give up on this folder and everything below it"""
        for node in self.walk():
            node.destId = FAILED_DEST_ID

    def walk(self) -> Iterator['FolderNode']:
        """Yield this folder and all descendants, pre-order"""
        yield self
        for child in self.folders:
            yield from child.walk()

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'sourceId': self.sourceId,
            'parentId': self.parentId,
            'destId': self.destId,
            'localPhase': self.localPhase,
            'starred': self.starred,
            'folders': [child.to_dict() for child in self.folders],
            'files': [f.to_dict() for f in self.files],
            'editors': list(self.editors),
            'viewers': list(self.viewers),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'FolderNode':
        return cls(
            name=data.get('name', ''),
            sourceId=data['sourceId'],
            parentId=data.get('parentId', ''),
            destId=data.get('destId', ''),
            localPhase=int(data.get('localPhase', 0)),
            starred=bool(data.get('starred', False)),
            folders=[cls.from_dict(child) for child in data.get('folders', [])],
            files=[FileNode.from_dict(f) for f in data.get('files', [])],
            editors=list(data.get('editors', [])),
            viewers=list(data.get('viewers', [])),
        )


@dataclass
class Job:
    """Root persisted document for one replication job"""

    start: str = ''
    timeoutAt: str = ''
    phase: int = PHASE_DISCOVERY
    end: str = ''
    totalRuntimeMinutes: float = 0.0
    fileCount: int = 0
    folderCount: int = 0
    failureCount: int = 0
    failures: List[FailureRecord] = field(default_factory=list)
    moveFiles: bool = False
    tree: List[FolderNode] = field(default_factory=list)
    sourceId: str = ''
    destinationParentId: str = ''
    invocations: int = 0

    @classmethod
    def create(cls, source_id: str = '', dest_parent_id: str = '',
               move_files: bool = False) -> 'Job':
        """Fresh job at phase 0 with an empty tree"""
        return cls(
            start=datetime.now().isoformat(),
            moveFiles=move_files,
            sourceId=source_id,
            destinationParentId=dest_parent_id,
        )

    @property
    def done(self) -> bool:
        return self.phase >= PHASE_DONE

    def advance_phase(self):
        """Move to the next phase; the counter only goes up"""
        self.phase = min(self.phase + 1, PHASE_DONE)

    def record_failure(self, name: str, source_id: str, message: str):
        """Append a failure and keep failureCount in step with the list"""
        self.failures.append(FailureRecord(name=name, sourceId=source_id, message=message))
        self.failureCount = len(self.failures)

    def is_root(self, node: FolderNode) -> bool:
        return any(node is root for root in self.tree)

    def folders(self) -> Iterator[FolderNode]:
        """All folder nodes in the forest, pre-order"""
        for root in self.tree:
            yield from root.walk()

    def elapsed_minutes(self) -> float:
        """Wall-clock minutes from job start to end (or now)"""
        if not self.start:
            return 0.0
        started = datetime.fromisoformat(self.start)
        finished = datetime.fromisoformat(self.end) if self.end else datetime.now()
        return round((finished - started).total_seconds() / 60, 2)

    def to_dict(self) -> Dict:
        return {
            'start': self.start,
            'timeoutAt': self.timeoutAt,
            'phase': self.phase,
            'end': self.end,
            'totalRuntimeMinutes': self.totalRuntimeMinutes,
            'fileCount': self.fileCount,
            'folderCount': self.folderCount,
            'failureCount': self.failureCount,
            'failures': [f.to_dict() for f in self.failures],
            'moveFiles': self.moveFiles,
            'sourceId': self.sourceId,
            'destinationParentId': self.destinationParentId,
            'invocations': self.invocations,
            'tree': [root.to_dict() for root in self.tree],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Job':
        failures = [FailureRecord.from_dict(f) for f in data.get('failures', [])]
        return cls(
            start=data.get('start', ''),
            timeoutAt=data.get('timeoutAt', ''),
            phase=int(data.get('phase', PHASE_DISCOVERY)),
            end=data.get('end', ''),
            totalRuntimeMinutes=float(data.get('totalRuntimeMinutes', 0.0)),
            fileCount=int(data.get('fileCount', 0)),
            folderCount=int(data.get('folderCount', 0)),
            failureCount=len(failures),
            failures=failures,
            moveFiles=bool(data.get('moveFiles', False)),
            tree=[FolderNode.from_dict(root) for root in data.get('tree', [])],
            sourceId=data.get('sourceId', ''),
            destinationParentId=data.get('destinationParentId', ''),
            invocations=int(data.get('invocations', 0)),
        )
