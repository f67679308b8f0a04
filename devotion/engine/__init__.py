"""Workflow engine: branch resolution and the ticket transitions."""

from devotion.engine.branching import BranchResolver
from devotion.engine.orchestrator import WorkflowOrchestrator

__all__ = ["BranchResolver", "WorkflowOrchestrator"]
