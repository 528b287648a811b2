"""Task functions."""

from typing import Literal

from pydantic import Field, field_validator

from vea.functions.base import FunctionDefinition, FunctionInput, as_record, count_by
from vea.services.business_data import BusinessDataService

TaskStatus = Literal["todo", "in_progress", "review", "done", "blocked"]
Priority = Literal["low", "medium", "high", "urgent"]


def _normalize_choice(v):
    if isinstance(v, str):
        return v.strip().lower().replace(" ", "_").replace("-", "_")
    return v


class GetTasksInput(FunctionInput):
    """Input schema for listing tasks."""

    status: TaskStatus | None = Field(
        default=None, description="Filter by status: todo, in_progress, review, done, blocked"
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return _normalize_choice(v)


class CreateTaskInput(FunctionInput):
    """Input schema for task creation."""

    title: str = Field(..., min_length=1, max_length=200, description="Task title")
    description: str = Field(default="", description="Task description")
    priority: Priority = Field(default="medium", description="low, medium, high, or urgent")
    status: TaskStatus = Field(default="todo", description="todo, in_progress, review, done, or blocked")
    due_date: str | None = Field(default=None, description="ISO date")
    project_id: str | None = Field(default=None, description="Associated project ID")

    @field_validator("priority", "status", mode="before")
    @classmethod
    def normalize_choices(cls, v):
        return _normalize_choice(v)


def create_get_tasks_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_tasks_handler(params: GetTasksInput, user_id: str) -> dict:
        tasks = await data_service.get_tasks(user_id)
        if params.status:
            tasks = [t for t in tasks if t.status == params.status]

        return {
            "summary": {
                "total": len(tasks),
                "by_priority": count_by(tasks, "priority"),
                "by_status": count_by(tasks, "status"),
            },
            "tasks": [
                {
                    "id": t.id,
                    "title": t.title,
                    "description": t.description,
                    "status": t.status,
                    "priority": t.priority,
                    "due_date": t.due_date,
                    "project_name": t.project_name,
                    "tags": t.tags,
                }
                for t in tasks
            ],
        }

    return FunctionDefinition(
        name="get_tasks",
        description="Get all tasks with their status, priority, assignees, and due dates",
        input_schema_class=GetTasksInput,
        handler=get_tasks_handler,
        parameters={"status": "string (optional) - Filter by status: todo, in_progress, review, done, blocked"},
    )


def create_create_task_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def create_task_handler(params: CreateTaskInput, user_id: str) -> dict:
        task = await data_service.create_task(
            user_id,
            {
                "title": params.title,
                "description": params.description,
                "priority": params.priority,
                "status": params.status,
                "due_date": params.due_date,
                "project_id": params.project_id,
                "tags": [],
            },
        )
        return {
            "message": f'✅ Task "{task.title}" created successfully!',
            "task": as_record(task),
        }

    return FunctionDefinition(
        name="create_task",
        description="Create a new task",
        input_schema_class=CreateTaskInput,
        handler=create_task_handler,
        parameters={
            "title": "string (required) - Task title",
            "description": "string - Task description",
            "priority": "string - low, medium, high, or urgent",
            "status": "string - todo, in_progress, review, done, or blocked",
            "due_date": "string - ISO date",
            "project_id": "string - Associated project ID",
        },
    )
