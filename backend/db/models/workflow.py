"""Workflow model: a stored graph plus its run statistics."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel, SoftDeleteMixin


class Workflow(SoftDeleteMixin, BaseModel):
    """Workflow model representing an automation graph.

    Attributes:
        id: Unique identifier (UUID string)
        user_id: Owner of the workflow, if any
        name: Workflow name
        description: Workflow description
        status: draft, active or paused (informational for the engine)
        nodes: Raw node list in any accepted shape
        edges: Raw edge list
        node_count: Number of nodes, kept in sync with ``nodes``
        execution_count: Successful runs so far
        last_run_at: Completion time of the last successful run
    """

    __tablename__ = "workflows"

    user_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    name: Mapped[str] = mapped_column(nullable=False)
    description: Mapped[Optional[str]] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(default="draft")
    nodes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    edges: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    node_count: Mapped[int] = mapped_column(default=0)
    execution_count: Mapped[int] = mapped_column(default=0)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    executions: Mapped[list["Execution"]] = relationship(
        "Execution",
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Workflow(id={self.id}, name={self.name})>"
