"""Cross-cutting business insight functions."""

import asyncio
from datetime import UTC, datetime

from vea.functions.base import EmptyInput, FunctionDefinition, as_record, count_by
from vea.services.business_data import BusinessDataService, Task

REVENUE_TREND_MONTHS = 3
RECENT_PROJECT_LIMIT = 3


def _is_overdue(task: Task, today: str) -> bool:
    return bool(task.due_date) and task.due_date < today and task.status != "done"


def _percentage(part: int | float, whole: int | float) -> float:
    return (part / whole) * 100 if whole else 0.0


def create_get_dashboard_overview_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def get_dashboard_overview_handler(params: EmptyInput, user_id: str) -> dict:
        kpis, revenue, tasks, projects = await asyncio.gather(
            data_service.get_kpi_data(user_id),
            data_service.get_revenue_data(user_id),
            data_service.get_tasks(user_id),
            data_service.get_projects(user_id),
        )
        today = datetime.now(UTC).date().isoformat()

        return {
            "summary": "Here is your complete dashboard overview:",
            "kpis": as_record(kpis),
            "revenue": {
                "ytd": kpis.ytd_revenue,
                "trend": [as_record(month) for month in revenue[-REVENUE_TREND_MONTHS:]],
            },
            "projects": {
                "total": len(projects),
                "active": sum(1 for p in projects if p.status == "active"),
                "recent": [
                    {"name": p.name, "status": p.status, "progress": p.progress}
                    for p in projects[:RECENT_PROJECT_LIMIT]
                ],
            },
            "tasks": {
                "total": len(tasks),
                "by_status": count_by(tasks, "status"),
                "overdue": sum(1 for t in tasks if _is_overdue(t, today)),
            },
        }

    return FunctionDefinition(
        name="get_dashboard_overview",
        description="Get a complete overview of the business dashboard including KPIs, revenue, tasks, and projects",
        input_schema_class=EmptyInput,
        handler=get_dashboard_overview_handler,
    )


def create_analyze_business_health_function(data_service: BusinessDataService) -> FunctionDefinition:
    async def analyze_business_health_handler(params: EmptyInput, user_id: str) -> dict:
        kpis, financial, cash_flow, tasks, projects = await asyncio.gather(
            data_service.get_kpi_data(user_id),
            data_service.get_financial_summary(user_id),
            data_service.get_cash_flow_summary(user_id),
            data_service.get_tasks(user_id),
            data_service.get_projects(user_id),
        )

        task_completion = _percentage(sum(1 for t in tasks if t.status == "done"), len(tasks))
        project_completion = _percentage(sum(1 for p in projects if p.status == "completed"), len(projects))
        profit_margin = _percentage(financial.profit, financial.total_revenue) if financial.total_revenue > 0 else 0.0

        # Overall rating and recommendations are left to the narration call
        return {
            "overall_health": "Good",
            "metrics": {
                "revenue": {"ytd": kpis.ytd_revenue, "change": kpis.revenue_change},
                "profitability": {"profit": financial.profit, "margin": f"{profit_margin:.1f}%"},
                "cash_flow": {
                    "net": cash_flow.net_cash_flow,
                    "status": "Positive" if cash_flow.net_cash_flow > 0 else "Negative",
                },
                "productivity": {
                    "task_completion": f"{task_completion:.1f}%",
                    "project_completion": f"{project_completion:.1f}%",
                    "active_projects": sum(1 for p in projects if p.status == "active"),
                },
            },
            "recommendations": [],
        }

    return FunctionDefinition(
        name="analyze_business_health",
        description="Analyze overall business health including revenue trends, task completion, and cash flow",
        input_schema_class=EmptyInput,
        handler=analyze_business_health_handler,
    )
