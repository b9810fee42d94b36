"""
Core replication engine: runs the fixed sequence of phases across
time-boxed invocations
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Set

from errors import ReplicationError
from interfaces import StorageProvider
from job_model import (
    Job, PHASE_NAMES,
    PHASE_DISCOVERY, PHASE_FOLDER_CREATE, PHASE_FOLDER_SHARE, PHASE_FOLDER_STAR,
    PHASE_FILE_DISCOVER, PHASE_FILE_TRANSFER, PHASE_FILE_SHARE, PHASE_FILE_STAR,
    PHASE_FINISH,
)
from logging_config import create_logger
from permissions_migrator import PermissionsMigrator
from phase_operations import OperationContext, operation_for
from structure_mapper import DriveStructureMapper
from time_budget import TimeBudget
from tree_visitor import TreeVisitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Phase:
    """One stage of replication"""

    index: int
    name: str
    visits_tree: bool
    skippable: bool = True


PHASES: List[Phase] = [
    Phase(PHASE_DISCOVERY, PHASE_NAMES[PHASE_DISCOVERY], visits_tree=False),
    Phase(PHASE_FOLDER_CREATE, PHASE_NAMES[PHASE_FOLDER_CREATE], visits_tree=True),
    Phase(PHASE_FOLDER_SHARE, PHASE_NAMES[PHASE_FOLDER_SHARE], visits_tree=True),
    Phase(PHASE_FOLDER_STAR, PHASE_NAMES[PHASE_FOLDER_STAR], visits_tree=True),
    Phase(PHASE_FILE_DISCOVER, PHASE_NAMES[PHASE_FILE_DISCOVER], visits_tree=True),
    Phase(PHASE_FILE_TRANSFER, PHASE_NAMES[PHASE_FILE_TRANSFER], visits_tree=True),
    Phase(PHASE_FILE_SHARE, PHASE_NAMES[PHASE_FILE_SHARE], visits_tree=True),
    Phase(PHASE_FILE_STAR, PHASE_NAMES[PHASE_FILE_STAR], visits_tree=True),
    Phase(PHASE_FINISH, PHASE_NAMES[PHASE_FINISH], visits_tree=False, skippable=False),
]

# Moving a file keeps its sharing and star, so there is nothing to replicate
MOVE_MODE_SKIPS = {PHASE_NAMES[PHASE_FILE_SHARE], PHASE_NAMES[PHASE_FILE_STAR]}


class MigrationEngine:
    """Runs replication phases in order, checkpointing after each one"""

    def __init__(self, provider: StorageProvider, state_manager, config, continuation=None,
                 budget: Optional[TimeBudget] = None):
        """
        Initialize replication engine

        Args:
            provider: Storage provider (DriveOperations or compatible)
            state_manager: StateManager holding the job document
            config: Configuration object
            continuation: Continuation deciding what happens after an invocation
            budget: TimeBudget; a fresh one is created if omitted
        """
        self.provider = provider
        self.state = state_manager
        self.config = config
        self.continuation = continuation
        self.budget = budget or TimeBudget()

        self.structure_mapper = DriveStructureMapper(provider)
        self.permissions = PermissionsMigrator(provider, getattr(config, 'DOMAIN_MAPPING', {}))
        self.visitor = TreeVisitor(self.budget)
        self.log = create_logger(__name__)

    def execute(self) -> Job:
        """
        Run one invocation: load, work until done or out of time, save,
        then schedule a continuation or send the completion notice

        Returns:
            The job as saved

        Raises:
            ReplicationError: On unreadable state, unreachable source or a
                broken hierarchy; no continuation is scheduled
        """
        job = self.state.load()

        if job.done:
            logger.info("Replication already complete - nothing to do")
            if self.continuation:
                self.continuation.conclude(job, completed_now=False)
            return job

        self.budget.start(self.config.MAX_RUNTIME_SECONDS)
        started_at = self.budget.clock()
        job.timeoutAt = self.budget.deadline_iso()
        job.invocations += 1

        self.log.start_invocation(job.phase, PHASE_NAMES[job.phase], job.timeoutAt)

        try:
            self.run(job)
        except ReplicationError as e:
            self.log.log_error("Replication aborted", e)
            raise
        except Exception as e:
            # Discovery listing or checkpoint failure; the next invocation retries
            self.log.log_error(f"Invocation failed during phase {PHASE_NAMES[job.phase]}", e)
        finally:
            elapsed = (self.budget.clock() - started_at) / 60
            job.totalRuntimeMinutes = round(job.totalRuntimeMinutes + elapsed, 2)
            self.state.save(job)

        self.log.end_invocation(job.phase, PHASE_NAMES[job.phase], {
            'folders': job.folderCount,
            'files': job.fileCount,
            'failures': job.failureCount,
        })

        if self.continuation:
            self.continuation.conclude(job, completed_now=job.done)

        return job

    def run(self, job: Job):
        """
        Execute phases from job.phase onward

        Per-node progress is written into job.tree as it happens, so an
        early return leaves a consistent document to save.

        Args:
            job: Job to advance in place
        """
        skipped = self.skipped_phases(job)

        while not job.done:
            phase = PHASES[job.phase]

            if phase.skippable and phase.name in skipped:
                self.log.log_phase(phase.index, phase.name, "skipped")
                job.advance_phase()
                continue

            if self.budget.expired():
                self.log.log_phase(phase.index, phase.name, "suspended - budget expired")
                return

            self.log.log_phase(phase.index, phase.name, "started")
            if not self._run_phase(phase, job):
                self.log.log_phase(phase.index, phase.name, "interrupted - budget expired")
                return

            job.advance_phase()
            self.log.log_phase(phase.index, phase.name, "completed")
            self.state.save(job)

    def skipped_phases(self, job: Job) -> Set[str]:
        """Phase names to skip: configured ones plus the move-mode skips"""
        skipped = {name.strip().lower() for name in getattr(self.config, 'SKIP_PHASES', [])}
        if job.moveFiles:
            skipped |= MOVE_MODE_SKIPS
        return skipped

    def _run_phase(self, phase: Phase, job: Job) -> bool:
        if phase.index == PHASE_DISCOVERY:
            return self._discover(job)
        if phase.index == PHASE_FINISH:
            return self._finish(job)

        ctx = OperationContext(
            job=job,
            provider=self.provider,
            budget=self.budget,
            permissions=self.permissions,
            state_document_id=self.state.document_id,
            show_progress=getattr(self.config, 'SHOW_PROGRESS', False),
        )
        return self.visitor.visit(job.tree, operation_for(phase.index, ctx))

    def _discover(self, job: Job) -> bool:
        source_id = job.sourceId or self.config.SOURCE_FOLDER_ID
        dest_parent_id = job.destinationParentId or self.config.DEST_PARENT_ID
        job.sourceId = source_id
        job.destinationParentId = dest_parent_id

        job.tree = [self.structure_mapper.discover(source_id, dest_parent_id)]
        return True

    def _finish(self, job: Job) -> bool:
        job.end = datetime.now().isoformat()
        logger.info(f"Replication finished: {job.folderCount} folders, "
                    f"{job.fileCount} files, {job.failureCount} failures")
        return True
