"""Function registry and dispatcher for the AI assistant."""

from typing import Any

from pydantic import ValidationError

from vea.errors import UnknownFunctionError
from vea.functions.base import FunctionDefinition
from vea.functions.customers import create_get_customers_function
from vea.functions.finances import (
    create_get_cash_flow_function,
    create_get_financial_summary_function,
    create_get_invoices_function,
    create_get_time_tracking_function,
)
from vea.functions.insights import create_analyze_business_health_function, create_get_dashboard_overview_function
from vea.functions.projects import create_create_project_function, create_get_projects_function
from vea.functions.tasks import create_create_task_function, create_get_tasks_function
from vea.models.functions import FunctionDescriptor, FunctionResult
from vea.models.llm import LLMToolDefinition
from vea.services.business_data import BusinessDataService
from vea.utils.logging import get_logger

logger = get_logger(__name__)


def _format_validation_error(name: str, error: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}" for err in error.errors()
    )
    return f"Invalid parameters for {name}: {details}"


class FunctionRegistry:
    """Registry of business functions the assistant may invoke."""

    def __init__(self, data_service: BusinessDataService):
        """Initialize registry with the business data service."""
        self.data_service = data_service
        self._functions: dict[str, FunctionDefinition] = {}
        self._register_default_functions()

    def _register_default_functions(self) -> None:
        """Register the default business function catalog, in advertised order."""
        functions = [
            create_get_dashboard_overview_function(self.data_service),
            create_get_projects_function(self.data_service),
            create_create_project_function(self.data_service),
            create_get_tasks_function(self.data_service),
            create_create_task_function(self.data_service),
            create_get_customers_function(self.data_service),
            create_get_financial_summary_function(self.data_service),
            create_get_invoices_function(self.data_service),
            create_get_cash_flow_function(self.data_service),
            create_get_time_tracking_function(self.data_service),
            create_analyze_business_health_function(self.data_service),
        ]

        for function in functions:
            self.register_function(function)

    def register_function(self, function: FunctionDefinition) -> None:
        """Register a new function in the registry."""
        self._functions[function.name] = function

    def get_descriptors(self) -> list[FunctionDescriptor]:
        """Get the catalog advertised in the system prompt."""
        return [function.get_descriptor() for function in self._functions.values()]

    def get_tool_definitions(self) -> list[LLMToolDefinition]:
        """Get native tool definitions for every registered function."""
        return [function.get_tool_definition() for function in self._functions.values()]

    async def dispatch(self, name: str, raw_params: dict[str, Any], user_id: str) -> FunctionResult:
        """Execute a function on behalf of a user.

        Never raises: unknown names, invalid parameters and handler failures
        are all reported through the result envelope.

        Args:
            name: Function name
            raw_params: Parameters as parsed from the model reply
            user_id: Identity of the acting user (scopes all data access)

        Returns:
            FunctionResult envelope
        """
        function = self._functions.get(name)
        if function is None:
            logger.warning(f"Model requested unknown function: {name}")
            return FunctionResult.fail(str(UnknownFunctionError(name)))

        try:
            params = function.parse_input(raw_params)
        except ValidationError as e:
            logger.warning(f"Invalid parameters for {name}: {e.error_count()} error(s)")
            return FunctionResult.fail(_format_validation_error(name, e))

        logger.info(f"Executing function {name} for user {user_id}")
        try:
            data = await function.handler(params, user_id)
        except Exception as e:
            logger.error(f"Function {name} failed: {e}")
            return FunctionResult.fail(str(e) or e.__class__.__name__)

        return FunctionResult.ok(data)
