"""Shared fixtures: an in-memory Drive, a controllable clock and engine wiring."""

import pytest

from continuation import Continuation
from migration_engine import MigrationEngine
from scheduler import FileScheduler
from state_manager import LocalStateManager
from time_budget import TimeBudget


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDrive:
    """In-memory storage provider recording every call."""

    def __init__(self) -> None:
        self.items: dict = {}
        self.order: list = []
        self.calls: list = []
        self.fail_copy: set = set()
        self.fail_create: set = set()
        self.on_create = None
        self._counter = 0

    # -- setup helpers -------------------------------------------------

    def add_folder(self, item_id, name, parent=None, editors=(), viewers=(), starred=False):
        self._add(item_id, name, parent, True, 0, editors, viewers, starred)

    def add_file(self, item_id, name, parent, size=0, editors=(), viewers=(), starred=False):
        self._add(item_id, name, parent, False, size, editors, viewers, starred)

    def _add(self, item_id, name, parent, is_folder, size, editors, viewers, starred):
        self.items[item_id] = {
            "name": name,
            "parent": parent,
            "folder": is_folder,
            "size": size,
            "editors": list(editors),
            "viewers": list(viewers),
            "starred": starred,
        }
        self.order.append(item_id)

    def calls_to(self, method):
        return [args for name, args in self.calls if name == method]

    def children(self, parent, folders):
        return [
            i for i in self.order
            if self.items[i]["parent"] == parent and self.items[i]["folder"] is folders
        ]

    # -- provider interface --------------------------------------------

    def get_folder(self, folder_id):
        self.calls.append(("get_folder", (folder_id,)))
        if folder_id not in self.items:
            raise KeyError(folder_id)
        return {"id": folder_id, "name": self.items[folder_id]["name"]}

    def list_subfolders(self, folder_id):
        self.calls.append(("list_subfolders", (folder_id,)))
        return [{"id": i, "name": self.items[i]["name"]} for i in self.children(folder_id, True)]

    def list_files(self, folder_id):
        self.calls.append(("list_files", (folder_id,)))
        return [
            {"id": i, "name": self.items[i]["name"], "size": self.items[i]["size"]}
            for i in self.children(folder_id, False)
        ]

    def create_folder(self, folder_name, parent_id):
        self.calls.append(("create_folder", (folder_name, parent_id)))
        if folder_name in self.fail_create:
            self.fail_create.discard(folder_name)
            raise RuntimeError(f"cannot create {folder_name}")
        self._counter += 1
        new_id = f"dest-{self._counter}"
        self.add_folder(new_id, folder_name, parent_id)
        if self.on_create:
            self.on_create(folder_name)
        return new_id

    def copy_file(self, source_file_id, dest_folder_id, new_name):
        self.calls.append(("copy_file", (source_file_id, dest_folder_id, new_name)))
        if source_file_id in self.fail_copy:
            raise RuntimeError("copy refused")
        self._counter += 1
        new_id = f"copy-{self._counter}"
        self.add_file(new_id, new_name, dest_folder_id, self.items[source_file_id]["size"])
        return new_id

    def move_file(self, file_id, dest_folder_id, source_folder_id):
        self.calls.append(("move_file", (file_id, dest_folder_id, source_folder_id)))
        self.items[file_id]["parent"] = dest_folder_id

    def get_editors(self, item_id):
        self.calls.append(("get_editors", (item_id,)))
        return list(self.items[item_id]["editors"])

    def get_viewers(self, item_id):
        self.calls.append(("get_viewers", (item_id,)))
        return list(self.items[item_id]["viewers"])

    def add_editors(self, item_id, emails):
        self.calls.append(("add_editors", (item_id, tuple(emails))))
        self.items[item_id]["editors"].extend(emails)
        return {"granted": list(emails), "failed": []}

    def add_viewers(self, item_id, emails):
        self.calls.append(("add_viewers", (item_id, tuple(emails))))
        self.items[item_id]["viewers"].extend(emails)
        return {"granted": list(emails), "failed": []}

    def get_starred(self, item_id):
        self.calls.append(("get_starred", (item_id,)))
        return self.items[item_id]["starred"]

    def set_starred(self, item_id, starred):
        self.calls.append(("set_starred", (item_id, starred)))
        self.items[item_id]["starred"] = starred


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list = []

    def send(self, recipient, subject, body):
        self.sent.append((recipient, subject, body))
        return True


class EngineConfig:
    SOURCE_FOLDER_ID = "src-root"
    DEST_PARENT_ID = "dest-parent"
    MAX_RUNTIME_SECONDS = 300
    RETRY_DELAY_SECONDS = 60
    MOVE_FILES = False
    SKIP_PHASES: list = []
    DOMAIN_MAPPING: dict = {}
    STATE_DOCUMENT_NAME = "replication_state.json"
    SHOW_PROGRESS = False


def make_config(**overrides):
    return type("TestConfig", (EngineConfig,), overrides)


class Harness:
    """Everything needed to run invocations against a FakeDrive."""

    def __init__(self, tmp_path, drive, clock, **config_overrides) -> None:
        self.drive = drive
        self.clock = clock
        self.config = make_config(**config_overrides)
        self.state = LocalStateManager(
            str(tmp_path / "state.json"),
            source_id=self.config.SOURCE_FOLDER_ID,
            dest_parent_id=self.config.DEST_PARENT_ID,
            move_files=self.config.MOVE_FILES,
        )
        self.scheduler = FileScheduler(str(tmp_path / "schedule.json"), clock=clock)
        self.notifier = FakeNotifier()
        self.continuation = Continuation(
            scheduler=self.scheduler,
            notifier=self.notifier,
            recipient="owner@example.com",
            delay_seconds=self.config.RETRY_DELAY_SECONDS,
        )

    def invoke(self):
        """One invocation with a fresh engine, as a scheduler would run it."""
        engine = MigrationEngine(
            self.drive,
            self.state,
            self.config,
            continuation=self.continuation,
            budget=TimeBudget(clock=self.clock),
        )
        return engine.execute()


def build_scenario_drive() -> FakeDrive:
    """Root with subfolder B (one 10-byte file) and two files at the root."""
    drive = FakeDrive()
    drive.add_folder("dest-parent", "Target")
    drive.add_folder("src-root", "Root", editors=["alice@old.example.com"], starred=True)
    drive.add_folder("src-b", "B", parent="src-root", viewers=["bob@old.example.com"])
    drive.add_file("f-b1", "b1.txt", "src-b", size=10)
    drive.add_file("f-r1", "r1.txt", "src-root", size=5, editors=["carol@old.example.com"])
    drive.add_file("f-r2", "r2.txt", "src-root", size=7, starred=True)
    return drive


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def drive() -> FakeDrive:
    return build_scenario_drive()


@pytest.fixture
def harness(tmp_path, drive, clock) -> Harness:
    return Harness(tmp_path, drive, clock)
