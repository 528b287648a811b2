"""Project functions."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import Field, field_validator

from vea.functions.base import EmptyInput, FunctionDefinition, FunctionInput, as_record
from vea.services.business_data import BusinessDataService

Priority = Literal["low", "medium", "high", "urgent"]


class CreateProjectInput(FunctionInput):
    """Input schema for project creation."""

    name: str = Field(..., min_length=1, max_length=200, description="Project name")
    description: str = Field(default="", description="Project description")
    priority: Priority = Field(default="medium", description="low, medium, high, or urgent")
    start_date: str | None = Field(default=None, description="ISO date")
    end_date: str | None = Field(default=None, description="ISO date")
    budget: float = Field(default=0, ge=0, description="Project budget")

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return v.lower() if isinstance(v, str) else v


def create_get_projects_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_projects_handler(params: EmptyInput, user_id: str) -> dict:
        projects = await data_service.get_projects(user_id)
        return {
            "total": len(projects),
            "projects": [
                {
                    "id": p.id,
                    "name": p.name,
                    "description": p.description,
                    "status": p.status,
                    "priority": p.priority,
                    "progress": p.progress,
                    "budget": p.budget,
                    "spent": p.spent,
                    "start_date": p.start_date,
                    "end_date": p.end_date,
                    "tags": p.tags,
                }
                for p in projects
            ],
        }

    return FunctionDefinition(
        name="get_projects",
        description="Get all projects with their details, status, progress, budget, and deadlines",
        input_schema_class=EmptyInput,
        handler=get_projects_handler,
    )


def create_create_project_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def create_project_handler(params: CreateProjectInput, user_id: str) -> dict:
        project = await data_service.create_project(
            user_id,
            {
                "name": params.name,
                "description": params.description,
                "priority": params.priority,
                "start_date": params.start_date or datetime.now(UTC).date().isoformat(),
                "end_date": params.end_date,
                "budget": params.budget,
                "status": "active",
                "progress": 0,
                "spent": 0.0,
                "color": "#3B82F6",
                "tags": [],
            },
        )
        return {
            "message": f'✅ Project "{project.name}" created successfully!',
            "project": as_record(project),
        }

    return FunctionDefinition(
        name="create_project",
        description="Create a new project",
        input_schema_class=CreateProjectInput,
        handler=create_project_handler,
        parameters={
            "name": "string (required) - Project name",
            "description": "string - Project description",
            "priority": "string - low, medium, high, or urgent",
            "start_date": "string - ISO date",
            "end_date": "string - ISO date",
            "budget": "number - Project budget",
        },
    )
