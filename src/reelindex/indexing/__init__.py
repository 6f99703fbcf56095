"""Indexing pipeline: change listener, index processor and reconciliation."""

from reelindex.indexing.listener import ChangeListener
from reelindex.indexing.processor import IndexProcessor
from reelindex.indexing.reconciliation import CleanupResult, ReconciliationJob

__all__ = ["ChangeListener", "CleanupResult", "IndexProcessor", "ReconciliationJob"]
