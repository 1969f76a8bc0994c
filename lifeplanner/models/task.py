"""
Task model definitions.

Only the task fields the repeat engine reads or writes are modelled here;
board/list/task CRUD lives outside this service.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from lifeplanner.models.enums import Priority, TaskStatus


class TaskBase(BaseModel):
    """Base task fields shared across create/read."""

    name: str = Field(..., min_length=1, max_length=500, description="Task name")
    description: Optional[str] = Field(None, max_length=2000)
    priority: Priority = Priority.MEDIUM
    board_id: Optional[str] = Field(None, description="Owning board")
    list_id: Optional[str] = Field(None, description="Owning list on the board")
    due_time: Optional[datetime] = Field(
        None, description="Due time; for a repeating task this is the anchor time"
    )
    completed: bool = False
    status: TaskStatus = TaskStatus.TODO
    new_task: bool = Field(False, description="Marker for freshly generated tasks")


class TaskCreate(TaskBase):
    """Create a new task (a draft handed to the task store)."""

    repeat_id: Optional[UUID] = Field(
        None, description="Repeat rule that generated this task"
    )
    occurrence_at: Optional[datetime] = Field(
        None, description="Occurrence instant this task represents"
    )


class Task(TaskCreate):
    """Task with metadata."""

    id: UUID
    owner_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
