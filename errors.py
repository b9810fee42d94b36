"""
Error types that abort a replication invocation
"""


class ReplicationError(Exception):
    """Base class for fatal replication errors"""


class StateDocumentError(ReplicationError):
    """Raised when the persisted job document cannot be read or parsed"""


class SourceUnavailableError(ReplicationError):
    """Raised when the source folder cannot be reached during discovery"""


class StructuralAnomalyError(ReplicationError):
    """Raised when the folder hierarchy is not a tree, or a parent was never created"""
