"""Execution model: one run of a workflow."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ExecutionStatus
from db.base import BaseModel


class Execution(BaseModel):
    """Execution model representing a workflow run.

    Attributes:
        id: Unique identifier (UUID string), also the run's execution_id
        workflow_id: Foreign key to Workflow
        status: pending, running, completed or failed
        started_at: Run start timestamp
        completed_at: Run end timestamp
        duration_ms: Run duration in milliseconds
        error: Error message if the run failed
    """

    __tablename__ = "executions"

    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(default=ExecutionStatus.PENDING.value, index=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    workflow: Mapped["Workflow"] = relationship(
        "Workflow", back_populates="executions", lazy="noload"
    )
    steps: Mapped[list["ExecutionStep"]] = relationship(
        "ExecutionStep",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="ExecutionStep.step_order",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Execution(id={self.id}, status={self.status})>"
