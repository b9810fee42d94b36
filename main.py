"""
Main application entry point for the resumable Drive folder replicator
"""
import argparse
import sys
import time

from config import Config
from auth import GoogleAuthManager
from continuation import Continuation
from drive_operations import DriveOperations
from errors import ReplicationError
from migration_engine import MigrationEngine
from notifier import GmailNotifier, LogNotifier
from scheduler import FileScheduler
from state_manager import state_manager_from_config
from structure_mapper import format_tree
from logging_config import setup_logging, create_logger

logger = create_logger(__name__)


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Resumable Google Drive folder replicator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Run one time-boxed invocation (schedules its own continuation)
  python main.py --mode run

  # Keep running invocations until the replica is complete
  python main.py --mode daemon

  # Show the persisted job document
  python main.py --mode status

  # Check credentials and API access
  python main.py --mode validate
        '''
    )

    parser.add_argument(
        '--mode',
        choices=['run', 'daemon', 'status', 'validate'],
        default='run',
        help='Operation mode'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=Config.LOG_LEVEL,
        help=f'Logging level (default: {Config.LOG_LEVEL})'
    )

    return parser.parse_args()


def validate_setup():
    """Validate configuration and setup"""
    logger.info("Validating setup...")

    try:
        Config.validate()
        logger.info("✓ Configuration validated")
        return True
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"✗ Configuration validation failed: {e}")
        return False


def create_auth_manager():
    return GoogleAuthManager(
        Config.CREDENTIALS_FILE,
        Config.SCOPES,
        token_file=Config.TOKEN_FILE,
        delegate_email=Config.DELEGATE_EMAIL or None
    )


def build_engine(auth_manager) -> MigrationEngine:
    """Wire the engine to Drive, the state document, the scheduler and the notifier"""
    drive_ops = DriveOperations(auth_manager.get_drive_service())
    state_mgr = state_manager_from_config(Config, drive_ops)

    if Config.NOTIFY_EMAIL:
        notifier = GmailNotifier(auth_manager.get_gmail_service())
    else:
        notifier = LogNotifier()

    continuation = Continuation(
        scheduler=FileScheduler(Config.SCHEDULE_FILE),
        notifier=notifier,
        recipient=Config.NOTIFY_EMAIL,
        delay_seconds=Config.RETRY_DELAY_SECONDS
    )

    return MigrationEngine(drive_ops, state_mgr, Config, continuation=continuation)


def run_invocation():
    """Single re-entrant entry point; used for the first run and every continuation"""
    auth_manager = create_auth_manager()
    auth_manager.authenticate()
    build_engine(auth_manager).execute()


def daemon_mode():
    """Run invocations back to back, honouring scheduled continuations"""
    scheduler = FileScheduler(Config.SCHEDULE_FILE)

    run_invocation()

    while True:
        due = scheduler.next_due()
        if due is None:
            logger.info("No continuation scheduled - replication finished")
            return True

        wait = max(0.0, due - time.time())
        logger.info(f"Next invocation in {wait:.0f}s")
        time.sleep(wait)

        # The continuation fires once; the invocation schedules the next one
        scheduler.cancel_all()
        run_invocation()


def status_mode():
    """Print the persisted job document"""
    drive_ops = None
    if Config.STATE_BACKEND == 'drive':
        auth_manager = create_auth_manager()
        auth_manager.authenticate()
        drive_ops = DriveOperations(auth_manager.get_drive_service())

    job = state_manager_from_config(Config, drive_ops).load()
    print(format_tree(job))
    return True


def validate_mode():
    """Validate setup and test connections"""
    auth_manager = create_auth_manager()
    auth_manager.authenticate()

    if auth_manager.test_connection() is None:
        logger.error("✗ Connection test failed")
        return False

    drive_ops = DriveOperations(auth_manager.get_drive_service())
    try:
        folder = drive_ops.get_folder(Config.SOURCE_FOLDER_ID)
        logger.info(f"✓ Source folder: {folder.get('name')}")
        folder = drive_ops.get_folder(Config.DEST_PARENT_ID)
        logger.info(f"✓ Destination parent: {folder.get('name')}")
    except Exception as e:
        logger.error(f"✗ Folder access check failed: {e}")
        return False

    logger.info("✓ VALIDATION SUCCESSFUL")
    return True


def main():
    """Main application entry point"""
    args = parse_arguments()

    Config.REPORT_DIR.mkdir(exist_ok=True)
    setup_logging(args.log_level, str(Config.REPORT_DIR / Config.LOG_FILE))

    logger.info("Google Drive Folder Replicator")
    logger.info(f"Mode: {args.mode}")

    if not validate_setup():
        sys.exit(1)

    try:
        if args.mode == 'run':
            run_invocation()
            success = True
        elif args.mode == 'daemon':
            success = daemon_mode()
        elif args.mode == 'status':
            success = status_mode()
        else:
            success = validate_mode()
    except ReplicationError as e:
        logger.log_error("Replication stopped", e)
        success = False

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
