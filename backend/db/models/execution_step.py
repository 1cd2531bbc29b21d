"""ExecutionStep model: the record of one step within a run."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import StepStatus
from db.base import BaseModel


class ExecutionStep(BaseModel):
    """Per-step execution record.

    One row per (execution_id, node_id); later writes for the same step
    update the row in place.

    Attributes:
        execution_id: Foreign key to Execution
        node_id: Id of the graph node
        name: Node label at execution time
        type: Declared node type
        status: pending, running, completed, failed or skipped
        started_at / completed_at: Step timestamps
        duration_ms: Step duration in milliseconds
        output_summary: JSON text of the step output (long strings truncated)
        error: Error message if the step failed
        step_order: Position in the execution plan
    """

    __tablename__ = "execution_steps"
    __table_args__ = (
        UniqueConstraint("execution_id", "node_id", name="uq_execution_steps_execution_node"),
    )

    execution_id: Mapped[str] = mapped_column(
        ForeignKey("executions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_id: Mapped[str] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(nullable=False)
    type: Mapped[str] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(default=StepStatus.PENDING.value)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(nullable=True)
    output_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_order: Mapped[int] = mapped_column(default=0)

    execution: Mapped["Execution"] = relationship(
        "Execution", back_populates="steps", lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<ExecutionStep(node_id={self.node_id}, status={self.status})>"
