"""
Tree records - persistence and ownership lookup.
"""

from citytrees.kernel.trees.tree_service import TreeService, tree_status

__all__ = ["TreeService", "tree_status"]
