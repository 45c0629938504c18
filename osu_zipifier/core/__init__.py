"""Batch orchestration."""

from .orchestrator import BatchOrchestrator

__all__ = ["BatchOrchestrator"]
