"""Customer functions."""

from typing import Literal

from pydantic import Field, field_validator

from vea.functions.base import FunctionDefinition, FunctionInput, count_by
from vea.services.business_data import BusinessDataService


class GetCustomersInput(FunctionInput):
    """Input schema for listing customers."""

    status: Literal["active", "inactive", "lead", "prospect"] | None = Field(
        default=None, description="Filter by status: active, inactive, lead, prospect"
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.lower() if isinstance(v, str) else v


def create_get_customers_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_customers_handler(params: GetCustomersInput, user_id: str) -> dict:
        customers = await data_service.get_customers(user_id)
        if params.status:
            customers = [c for c in customers if c.status == params.status]

        return {
            "total": len(customers),
            "by_status": count_by(customers, "status"),
            "customers": [
                {
                    "name": c.name,
                    "email": c.email,
                    "company": c.company,
                    "city": c.city,
                    "status": c.status,
                    "customer_type": c.customer_type,
                }
                for c in customers
            ],
        }

    return FunctionDefinition(
        name="get_customers",
        description="Get all customers with their contact info, company details, and status",
        input_schema_class=GetCustomersInput,
        handler=get_customers_handler,
        parameters={"status": "string (optional) - Filter by status: active, inactive, lead, prospect"},
    )
