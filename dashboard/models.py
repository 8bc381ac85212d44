from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


STATUS_REGEX = "^(todo|in_progress|review|done)$"
PRIORITY_REGEX = "^(low|medium|high|urgent)$"


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=255, index=True)
    description: str | None = Field(default=None)
    assignee: str | None = Field(default=None, max_length=100)
    status: str = Field(default="todo", regex=STATUS_REGEX)
    priority: str = Field(default="medium", regex=PRIORITY_REGEX)
    progress: int = Field(default=0, ge=0, le=100)


class Task(TaskBase, table=True):
    """Database model. A task with a parent_id is a subtask."""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    project_id: int | None = Field(default=None, index=True)
    user_id: int | None = Field(default=None, index=True)
    parent_id: int | None = Field(
        default=None, foreign_key="tasks.id", index=True, ondelete="CASCADE"
    )
    start_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    due_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    end_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class TimeEntry(SQLModel, table=True):
    __tablename__ = "time_entries"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    task_id: int | None = Field(
        default=None, foreign_key="tasks.id", index=True, ondelete="SET NULL"
    )
    project_id: int | None = Field(default=None)
    clock_in: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    clock_out: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    duration: int | None = Field(default=None)  # minutes
    notes: str | None = Field(default=None)


class SubtaskCreate(TaskBase):
    """Schema for creating a subtask"""

    start_date: datetime | None = None
    due_date: datetime | None = None
    end_date: datetime | None = None


class TaskUpdate(SQLModel):
    """Schema for updating a task or subtask - all fields optional"""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    assignee: str | None = None
    status: str | None = Field(default=None, regex=STATUS_REGEX)
    priority: str | None = Field(default=None, regex=PRIORITY_REGEX)
    progress: int | None = Field(default=None, ge=0, le=100)
    start_date: datetime | None = None
    due_date: datetime | None = None
    end_date: datetime | None = None


class TaskResponse(TaskBase):
    """Schema for task responses"""

    id: int
    project_id: int | None = None
    user_id: int | None = None
    parent_id: int | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TaskWithSubtasks(TaskResponse):
    subtasks: list[TaskResponse] = []


class WorkedEntry(SQLModel):
    id: int
    user_id: int
    clock_in: datetime
    clock_out: datetime | None = None
    duration: int
    notes: str | None = None


class WorkedHours(SQLModel):
    task_id: int
    total_hours: float
    total_minutes: int
    entry_count: int
    entries: list[WorkedEntry]
