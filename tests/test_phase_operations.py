"""Tests for phase_operations.py - per-node idempotency and failure isolation."""

import pytest

from conftest import FakeClock, FakeDrive
from errors import StructuralAnomalyError
from job_model import (
    FAILED_DEST_ID,
    FileNode,
    FolderNode,
    Job,
    PHASE_FILE_DISCOVER,
    PHASE_FILE_SHARE,
    PHASE_FILE_STAR,
    PHASE_FILE_TRANSFER,
    PHASE_FOLDER_CREATE,
    PHASE_FOLDER_STAR,
)
from permissions_migrator import PermissionsMigrator
from phase_operations import (
    FileDiscover,
    FileShare,
    FileStar,
    FileTransfer,
    FolderCreate,
    FolderShare,
    FolderStar,
    OperationContext,
    TransferResult,
    operation_for,
)
from time_budget import TimeBudget


def _context(drive, job, clock=None, duration=300, **kwargs) -> OperationContext:
    budget = TimeBudget(clock=clock or FakeClock())
    budget.start(duration)
    return OperationContext(
        job=job,
        provider=drive,
        budget=budget,
        permissions=PermissionsMigrator(drive),
        **kwargs,
    )


def _folder_with_files(drive: FakeDrive, count: int) -> FolderNode:
    drive.add_folder("src", "Src")
    drive.add_folder("dst", "Dst")
    node = FolderNode(name="Src", sourceId="src", parentId="parent", destId="dst",
                      localPhase=PHASE_FOLDER_CREATE)
    for i in range(count):
        drive.add_file(f"f{i}", f"file{i}.txt", "src")
        node.files.append(FileNode(name=f"file{i}.txt", sourceId=f"f{i}"))
    return node


class TestFolderCreate:
    def test_creates_and_propagates_to_children(self) -> None:
        drive = FakeDrive()
        child = FolderNode(name="Child", sourceId="c")
        root = FolderNode(name="Root", sourceId="r", parentId="target", folders=[child])
        job = Job(tree=[root])

        FolderCreate(_context(drive, job)).apply(root)

        assert root.destId == "dest-1"
        assert child.parentId == "dest-1"
        assert root.localPhase == PHASE_FOLDER_CREATE
        assert job.folderCount == 0

    def test_counts_non_root_folders(self) -> None:
        drive = FakeDrive()
        child = FolderNode(name="Child", sourceId="c", parentId="dest-root")
        root = FolderNode(name="Root", sourceId="r", destId="dest-root", folders=[child])
        job = Job(tree=[root])

        FolderCreate(_context(drive, job)).apply(child)

        assert job.folderCount == 1

    def test_existing_dest_id_makes_no_calls(self) -> None:
        drive = FakeDrive()
        node = FolderNode(name="Root", sourceId="r", parentId="target", destId="already",
                          localPhase=PHASE_FOLDER_CREATE)
        job = Job(tree=[node])
        before = node.to_dict()

        FolderCreate(_context(drive, job)).apply(node)

        assert drive.calls == []
        assert node.to_dict() == before

    def test_refused_create_gives_up_on_the_subtree(self) -> None:
        drive = FakeDrive()
        grandchild = FolderNode(name="Deep", sourceId="g")
        child = FolderNode(name="Child", sourceId="c", parentId="dest-root", folders=[grandchild])
        root = FolderNode(name="Root", sourceId="r", destId="dest-root", folders=[child])
        job = Job(tree=[root])
        drive.fail_create.add("Child")
        operation = FolderCreate(_context(drive, job))

        assert operation.apply(child) is True
        assert operation.apply(grandchild) is True

        assert child.failed and grandchild.failed
        assert job.folderCount == 0
        assert [(f.name, f.sourceId) for f in job.failures] == [("Child", "c")]
        assert len(drive.calls_to("create_folder")) == 1

    def test_later_phases_pass_over_failed_folders(self) -> None:
        drive = FakeDrive()
        node = FolderNode(name="Gone", sourceId="gone", destId=FAILED_DEST_ID,
                          localPhase=PHASE_FOLDER_CREATE)
        job = Job(tree=[node])

        for operation_class in (FolderShare, FolderStar, FileDiscover, FileTransfer, FileShare):
            assert operation_class(_context(drive, job)).apply(node) is True

        assert drive.calls == []
        assert node.localPhase == PHASE_FILE_SHARE

    def test_missing_parent_is_structural_anomaly(self) -> None:
        drive = FakeDrive()
        node = FolderNode(name="Orphan", sourceId="o")

        with pytest.raises(StructuralAnomalyError):
            FolderCreate(_context(drive, Job(tree=[node]))).apply(node)

        assert drive.calls == []


class TestFolderShare:
    def test_requires_destination(self) -> None:
        drive = FakeDrive()
        node = FolderNode(name="X", sourceId="x", localPhase=PHASE_FOLDER_CREATE)

        with pytest.raises(StructuralAnomalyError):
            FolderShare(_context(drive, Job(tree=[node]))).apply(node)

    def test_records_lists_once(self) -> None:
        drive = FakeDrive()
        drive.add_folder("src", "Src", editors=["e@x.com"], viewers=["v@x.com"])
        drive.add_folder("dst", "Dst")
        node = FolderNode(name="Src", sourceId="src", destId="dst", localPhase=PHASE_FOLDER_CREATE)
        operation = FolderShare(_context(drive, Job(tree=[node])))

        operation.apply(node)
        calls_after_first = len(drive.calls)
        operation.apply(node)

        assert node.editors == ["e@x.com"]
        assert node.viewers == ["v@x.com"]
        assert len(drive.calls) == calls_after_first


class TestFileDiscover:
    def test_skips_the_state_document_by_id(self) -> None:
        drive = FakeDrive()
        drive.add_folder("src", "Src")
        drive.add_file("a", "a.txt", "src", size=3)
        drive.add_file("s", "replication_state.json", "src", size=9)
        node = FolderNode(name="Src", sourceId="src", destId="dst")
        job = Job(tree=[node])

        FileDiscover(_context(drive, job, state_document_id="s")).apply(node)

        assert [(f.sourceId, f.size) for f in node.files] == [("a", 3)]

    def test_file_named_like_state_document_is_kept_without_drive_state(self) -> None:
        drive = FakeDrive()
        drive.add_folder("src", "Src")
        drive.add_file("s", "replication_state.json", "src")
        node = FolderNode(name="Src", sourceId="src", destId="dst")

        FileDiscover(_context(drive, Job(tree=[node]))).apply(node)

        assert [f.sourceId for f in node.files] == ["s"]

    def test_listing_failure_is_recorded_and_node_advances(self) -> None:
        drive = FakeDrive()
        node = FolderNode(name="Locked", sourceId="locked", destId="dst")
        job = Job(tree=[node])

        def refuse(folder_id):
            raise PermissionError("listing denied")

        drive.list_files = refuse

        assert FileDiscover(_context(drive, job)).apply(node) is True
        assert node.files == []
        assert job.failureCount == 1
        assert job.failures[0].sourceId == "locked"
        assert "listing denied" in job.failures[0].message
        assert node.localPhase == PHASE_FILE_DISCOVER


class TestFileTransfer:
    def test_failure_is_isolated(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 5)
        drive.fail_copy.add("f2")
        job = Job(tree=[node])

        FileTransfer(_context(drive, job)).apply(node)

        assert job.failureCount == 1
        assert job.fileCount == 4
        assert len(drive.calls_to("copy_file")) == 5
        assert node.files[2].destId == FAILED_DEST_ID
        assert job.failures[0].message == "copy refused"
        assert node.localPhase == PHASE_FILE_TRANSFER

    def test_already_transferred_files_make_no_calls(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 2)
        for file_node in node.files:
            file_node.destId = f"done-{file_node.sourceId}"
        job = Job(tree=[node])

        FileTransfer(_context(drive, job)).apply(node)

        assert drive.calls == []
        assert job.fileCount == 0

    def test_stops_when_budget_expires(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 3)
        clock = FakeClock()
        job = Job(tree=[node])
        operation = FileTransfer(_context(drive, job, clock=clock, duration=10))

        original = drive.copy_file

        def copy_then_expire(*args):
            clock.advance(20)
            return original(*args)

        drive.copy_file = copy_then_expire

        assert operation.apply(node) is False
        assert job.fileCount == 1
        assert node.localPhase == PHASE_FOLDER_CREATE

    def test_move_mode_keeps_identity(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 2)
        job = Job(tree=[node], moveFiles=True)

        FileTransfer(_context(drive, job)).apply(node)

        assert [f.destId for f in node.files] == ["f0", "f1"]
        assert drive.calls_to("move_file") == [("f0", "dst", "src"), ("f1", "dst", "src")]

    def test_transfer_returns_failure_result(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 1)
        drive.fail_copy.add("f0")

        result = FileTransfer(_context(drive, Job(tree=[node]))).transfer(node, node.files[0])

        assert result == TransferResult(ok=False, message="copy refused")


class TestPerFileOperations:
    def test_move_mode_makes_no_calls(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 2)
        for file_node in node.files:
            file_node.destId = file_node.sourceId
        job = Job(tree=[node], moveFiles=True)

        FileShare(_context(drive, job)).apply(node)
        FileStar(_context(drive, job)).apply(node)

        assert drive.calls == []

    def test_file_star_reads_the_file_itself(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 1)
        drive.items["f0"]["starred"] = True
        drive.add_file("copy", "file0.txt", "dst")
        node.files[0].destId = "copy"

        FileStar(_context(drive, Job(tree=[node]))).apply(node)

        assert drive.calls_to("get_starred") == [("f0",)]
        assert drive.items["copy"]["starred"] is True
        assert node.files[0].starred is True


def test_operation_for_whole_job_phase_is_none() -> None:
    assert operation_for(0, None) is None


class TestStarFailures:
    @staticmethod
    def _refuse_star(drive, item_id):
        original = drive.get_starred

        def get_starred(requested):
            if requested == item_id:
                drive.calls.append(("get_starred", (requested,)))
                raise PermissionError("star hidden")
            return original(requested)

        drive.get_starred = get_starred

    def test_folder_star_failure_advances_unstarred(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 0)
        self._refuse_star(drive, "src")

        assert FolderStar(_context(drive, Job(tree=[node]))).apply(node) is True

        assert node.starred is False
        assert node.localPhase == PHASE_FOLDER_STAR
        assert drive.calls_to("set_starred") == []

    def test_file_star_failure_is_isolated(self) -> None:
        drive = FakeDrive()
        node = _folder_with_files(drive, 3)
        for file_node in node.files:
            drive.items[file_node.sourceId]["starred"] = True
            drive.add_file(f"copy-{file_node.sourceId}", file_node.name, "dst")
            file_node.destId = f"copy-{file_node.sourceId}"
        self._refuse_star(drive, "f1")

        assert FileStar(_context(drive, Job(tree=[node]))).apply(node) is True

        assert [f.starred for f in node.files] == [True, False, True]
        assert all(f.localPhase == PHASE_FILE_STAR for f in node.files)
        assert drive.calls_to("set_starred") == [("copy-f0", True), ("copy-f2", True)]
