"""Database models for the workflow execution engine.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.workflow import Workflow
from db.models.execution import Execution
from db.models.execution_step import ExecutionStep

__all__ = [
    "Workflow",
    "Execution",
    "ExecutionStep",
]
