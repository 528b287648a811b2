"""Financial functions: summaries, invoices, cash flow and time tracking."""

from vea.functions.base import EmptyInput, FunctionDefinition, as_record, count_by
from vea.services.business_data import BusinessDataService

RECENT_INVOICE_LIMIT = 10


def create_get_financial_summary_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_financial_summary_handler(params: EmptyInput, user_id: str) -> dict:
        return as_record(await data_service.get_financial_summary(user_id))

    return FunctionDefinition(
        name="get_financial_summary",
        description="Get financial summary including total revenue, expenses, profit, and pending invoices",
        input_schema_class=EmptyInput,
        handler=get_financial_summary_handler,
    )


def create_get_invoices_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_invoices_handler(params: EmptyInput, user_id: str) -> dict:
        invoices = await data_service.get_invoices(user_id)

        return {
            "summary": {
                "total": len(invoices),
                "by_status": count_by(invoices, "status"),
                "total_amount": sum(i.total_amount for i in invoices),
                "paid_amount": sum(i.total_amount for i in invoices if i.status == "paid"),
            },
            "invoices": [
                {
                    "invoice_number": i.invoice_number,
                    "status": i.status,
                    "total_amount": i.total_amount,
                    "due_date": i.due_date,
                    "issue_date": i.issue_date,
                }
                for i in invoices[:RECENT_INVOICE_LIMIT]
            ],
        }

    return FunctionDefinition(
        name="get_invoices",
        description="Get all invoices with their status, amounts, and due dates",
        input_schema_class=EmptyInput,
        handler=get_invoices_handler,
    )


def create_get_cash_flow_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_cash_flow_handler(params: EmptyInput, user_id: str) -> dict:
        return as_record(await data_service.get_cash_flow_summary(user_id))

    return FunctionDefinition(
        name="get_cash_flow",
        description="Get cash flow data including income, expenses, and net cash flow",
        input_schema_class=EmptyInput,
        handler=get_cash_flow_handler,
    )


def create_get_time_tracking_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_time_tracking_handler(params: EmptyInput, user_id: str) -> dict:
        return as_record(await data_service.get_time_tracking_summary(user_id))

    return FunctionDefinition(
        name="get_time_tracking",
        description="Get time tracking summary including total hours, billable hours, and revenue",
        input_schema_class=EmptyInput,
        handler=get_time_tracking_handler,
    )
