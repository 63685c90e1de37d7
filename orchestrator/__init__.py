"""
Orchestration package for coordinating the import pipeline.

This package provides the orchestration layer that sequences one import run:
Fetch → Map → Render → Write, and owns the cooperative stop protocol.
"""

from .migration_orchestrator import (
    STATUS_COMPLETED,
    STATUS_ISSUES,
    STATUS_STOPPED,
    MigrationOrchestrator,
)

__all__ = [
    'MigrationOrchestrator',
    'STATUS_COMPLETED',
    'STATUS_STOPPED',
    'STATUS_ISSUES'
]
