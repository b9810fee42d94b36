"""
Pre-order traversal of the folder tree with cooperative interruption
"""
import logging
from typing import List, Protocol

from job_model import FolderNode
from time_budget import TimeBudget

logger = logging.getLogger(__name__)


class NodeOperation(Protocol):
    """Per-phase unit of work applied to one folder node"""

    def apply(self, node: FolderNode) -> bool:
        """Process `node`; return False if the budget ran out part way"""


class TreeVisitor:
    """Walks folders parent-first, stopping as soon as the budget expires"""

    def __init__(self, budget: TimeBudget):
        self.budget = budget

    def visit(self, roots: List[FolderNode], operation: NodeOperation) -> bool:
        """
        Apply `operation` to every folder, parents before children

        Args:
            roots: Top-level folders of the tree
            operation: Operation to apply

        Returns:
            True if every node was processed, False if interrupted
        """
        for root in roots:
            if not self._visit_node(root, operation):
                return False
        return True

    def _visit_node(self, node: FolderNode, operation: NodeOperation) -> bool:
        if self.budget.expired():
            logger.debug(f"Budget expired before folder {node.name}")
            return False

        if not operation.apply(node):
            return False

        for child in node.folders:
            if not self._visit_node(child, operation):
                return False

        return True
