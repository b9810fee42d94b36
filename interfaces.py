"""
Collaborator interfaces used by the replication engine
"""
from typing import Dict, List, Protocol


class StorageProvider(Protocol):
    """Operations the engine needs from the storage service"""

    def get_folder(self, folder_id: str) -> Dict:
        """Return {'id', 'name'} for a folder; raise if unreachable"""

    def list_subfolders(self, folder_id: str) -> List[Dict]:
        """Return [{'id', 'name'}] for direct subfolders"""

    def list_files(self, folder_id: str) -> List[Dict]:
        """Return [{'id', 'name', 'size'}] for direct non-folder children"""

    def create_folder(self, folder_name: str, parent_id: str) -> str:
        """Create a folder and return its id"""

    def copy_file(self, source_file_id: str, dest_folder_id: str, new_name: str) -> str:
        """Copy a file and return the new id; raise on failure"""

    def move_file(self, file_id: str, dest_folder_id: str, source_folder_id: str):
        """Move a file between folders; raise on failure"""

    def get_editors(self, item_id: str) -> List[str]:
        """Emails with write access (owner excluded)"""

    def get_viewers(self, item_id: str) -> List[str]:
        """Emails with read or comment access"""

    def add_editors(self, item_id: str, emails: List[str]) -> Dict:
        """Grant write access; return a result summary"""

    def add_viewers(self, item_id: str, emails: List[str]) -> Dict:
        """Grant read access; return a result summary"""

    def get_starred(self, item_id: str) -> bool:
        ...

    def set_starred(self, item_id: str, starred: bool):
        ...


class Scheduler(Protocol):
    """Re-invokes the entry point after a delay"""

    def schedule_after(self, entry_point: str, delay_seconds: int):
        ...

    def cancel_all(self):
        ...

    def pending(self) -> List[Dict]:
        ...


class Notifier(Protocol):
    """Delivers the completion notice to a human"""

    def send(self, recipient: str, subject: str, body: str):
        ...
