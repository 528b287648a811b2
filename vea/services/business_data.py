"""Business data access interface and implementations.

Every query is scoped to the organization the acting user belongs to.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any, Protocol

from cuid2 import cuid_wrapper

from vea.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


@dataclass
class Project:
    """Project record."""

    id: str
    organization_id: str
    name: str
    description: str = ""
    status: str = "active"  # planning, active, on_hold, completed, cancelled
    priority: str = "medium"
    progress: int = 0
    budget: float = 0.0
    spent: float = 0.0
    start_date: str | None = None
    end_date: str | None = None
    color: str = "#3B82F6"
    tags: list[str] = field(default_factory=list)


@dataclass
class Task:
    """Task record."""

    id: str
    organization_id: str
    title: str
    description: str = ""
    status: str = "todo"  # todo, in_progress, review, done, blocked
    priority: str = "medium"
    due_date: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class Customer:
    """Customer record."""

    id: str
    organization_id: str
    name: str
    email: str
    company: str | None = None
    city: str | None = None
    status: str = "active"  # active, inactive, lead, prospect
    customer_type: str = "business"


@dataclass
class Invoice:
    """Invoice record."""

    id: str
    organization_id: str
    invoice_number: str
    status: str  # draft, sent, paid, overdue, cancelled
    total_amount: float
    issue_date: str
    due_date: str


@dataclass
class Expense:
    """Expense record."""

    id: str
    organization_id: str
    amount: float


@dataclass
class CashFlowEntry:
    """Cash flow ledger entry."""

    id: str
    organization_id: str
    type: str  # income, expense
    amount: float
    status: str  # pending, completed, cancelled


@dataclass
class TimeEntry:
    """Time tracking entry. ``duration`` is in seconds."""

    id: str
    organization_id: str
    user_id: str
    duration: int
    billable: bool
    hourly_rate: float | None = None


@dataclass
class FinancialSummary:
    total_revenue: float
    pending_invoices: float
    total_expenses: float
    profit: float


@dataclass
class CashFlowSummary:
    total_income: float
    total_expenses: float
    net_cash_flow: float


@dataclass
class TimeTrackingSummary:
    total_hours: float
    billable_hours: float
    total_revenue: float


@dataclass
class KPIData:
    ytd_revenue: float
    revenue_change: float
    active_projects: int
    new_customers: int
    open_invoices: float


@dataclass
class RevenueMonth:
    month: str
    revenue: float
    target: float


class BusinessDataService(Protocol):
    """Interface for the tenant-scoped business data store."""

    async def get_projects(self, user_id: str) -> list[Project]:
        """Get all projects of the user's organization."""
        ...

    async def create_project(self, user_id: str, values: dict[str, Any]) -> Project:
        """Create a project in the user's organization."""
        ...

    async def get_tasks(self, user_id: str) -> list[Task]:
        """Get all tasks of the user's organization."""
        ...

    async def create_task(self, user_id: str, values: dict[str, Any]) -> Task:
        """Create a task in the user's organization."""
        ...

    async def get_customers(self, user_id: str) -> list[Customer]:
        ...

    async def get_invoices(self, user_id: str) -> list[Invoice]:
        """Get invoices, most recently issued first."""
        ...

    async def get_financial_summary(self, user_id: str) -> FinancialSummary:
        ...

    async def get_cash_flow_summary(self, user_id: str) -> CashFlowSummary:
        ...

    async def get_time_tracking_summary(self, user_id: str) -> TimeTrackingSummary:
        ...

    async def get_kpi_data(self, user_id: str) -> KPIData:
        ...

    async def get_revenue_data(self, user_id: str) -> list[RevenueMonth]:
        """Get monthly revenue, oldest month first."""
        ...


class InMemoryBusinessDataService:
    """In-memory business data service

    Uses seeded demo data for a single organization.
    """

    DEMO_USER_ID = "demo-user"
    DEMO_ORGANIZATION_ID = "org_demo"
    MONTHLY_TARGET = 20000.0

    def __init__(self, memberships: dict[str, str] | None = None):
        """Initialize with seeded demo data.

        Args:
            memberships: Mapping of user id to organization id
        """
        self.memberships = (
            memberships if memberships is not None else {self.DEMO_USER_ID: self.DEMO_ORGANIZATION_ID}
        )
        self.projects: list[Project] = []
        self.tasks: list[Task] = []
        self.customers: list[Customer] = []
        self.invoices: list[Invoice] = []
        self.expenses: list[Expense] = []
        self.cash_flow: list[CashFlowEntry] = []
        self.time_entries: list[TimeEntry] = []
        self._seed(self.DEMO_ORGANIZATION_ID)

    def organization_for(self, user_id: str) -> str:
        """Resolve the organization a user belongs to."""
        organization_id = self.memberships.get(user_id)
        if not organization_id:
            raise LookupError(
                f"No organization found for user {user_id}. Please make sure your account is properly set up."
            )
        return organization_id

    async def get_projects(self, user_id: str) -> list[Project]:
        org_id = self.organization_for(user_id)
        return [p for p in self.projects if p.organization_id == org_id]

    async def create_project(self, user_id: str, values: dict[str, Any]) -> Project:
        org_id = self.organization_for(user_id)
        project = Project(id=f"proj_{cuid()}", organization_id=org_id, **values)
        self.projects.insert(0, project)
        logger.info(f"Created project {project.id} for organization {org_id}")
        return project

    async def get_tasks(self, user_id: str) -> list[Task]:
        org_id = self.organization_for(user_id)
        return [t for t in self.tasks if t.organization_id == org_id]

    async def create_task(self, user_id: str, values: dict[str, Any]) -> Task:
        org_id = self.organization_for(user_id)
        project_name = None
        if values.get("project_id"):
            project = next((p for p in self.projects if p.id == values["project_id"]), None)
            if project is None or project.organization_id != org_id:
                raise LookupError(f"Project {values['project_id']} not found")
            project_name = project.name
        task = Task(id=f"task_{cuid()}", organization_id=org_id, project_name=project_name, **values)
        self.tasks.insert(0, task)
        logger.info(f"Created task {task.id} for organization {org_id}")
        return task

    async def get_customers(self, user_id: str) -> list[Customer]:
        org_id = self.organization_for(user_id)
        return [c for c in self.customers if c.organization_id == org_id]

    async def get_invoices(self, user_id: str) -> list[Invoice]:
        org_id = self.organization_for(user_id)
        invoices = [i for i in self.invoices if i.organization_id == org_id]
        return sorted(invoices, key=lambda i: i.issue_date, reverse=True)

    async def get_financial_summary(self, user_id: str) -> FinancialSummary:
        org_id = self.organization_for(user_id)
        invoices = [i for i in self.invoices if i.organization_id == org_id]
        total_revenue = sum(i.total_amount for i in invoices if i.status == "paid")
        pending = sum(i.total_amount for i in invoices if i.status == "sent")
        total_expenses = sum(e.amount for e in self.expenses if e.organization_id == org_id)
        return FinancialSummary(
            total_revenue=total_revenue,
            pending_invoices=pending,
            total_expenses=total_expenses,
            profit=total_revenue - total_expenses,
        )

    async def get_cash_flow_summary(self, user_id: str) -> CashFlowSummary:
        org_id = self.organization_for(user_id)
        completed = [e for e in self.cash_flow if e.organization_id == org_id and e.status == "completed"]
        income = sum(e.amount for e in completed if e.type == "income")
        expenses = sum(e.amount for e in completed if e.type == "expense")
        return CashFlowSummary(total_income=income, total_expenses=expenses, net_cash_flow=income - expenses)

    async def get_time_tracking_summary(self, user_id: str) -> TimeTrackingSummary:
        org_id = self.organization_for(user_id)
        entries = [e for e in self.time_entries if e.organization_id == org_id]
        total_seconds = sum(e.duration for e in entries)
        billable_seconds = sum(e.duration for e in entries if e.billable)
        revenue = sum((e.duration / 3600) * e.hourly_rate for e in entries if e.billable and e.hourly_rate)
        return TimeTrackingSummary(
            total_hours=total_seconds / 3600,
            billable_hours=billable_seconds / 3600,
            total_revenue=revenue,
        )

    async def get_kpi_data(self, user_id: str) -> KPIData:
        org_id = self.organization_for(user_id)
        year = datetime.now(UTC).year
        invoices = [i for i in self.invoices if i.organization_id == org_id]
        revenue = await self.get_revenue_data(user_id)

        revenue_change = 0.0
        if len(revenue) >= 2 and revenue[-2].revenue > 0:
            revenue_change = round((revenue[-1].revenue - revenue[-2].revenue) / revenue[-2].revenue * 100, 1)

        return KPIData(
            ytd_revenue=sum(
                i.total_amount for i in invoices if i.status == "paid" and i.issue_date.startswith(str(year))
            ),
            revenue_change=revenue_change,
            active_projects=sum(1 for p in self.projects if p.organization_id == org_id and p.status == "active"),
            new_customers=sum(1 for c in self.customers if c.organization_id == org_id),
            open_invoices=sum(i.total_amount for i in invoices if i.status in ("sent", "overdue")),
        )

    async def get_revenue_data(self, user_id: str) -> list[RevenueMonth]:
        org_id = self.organization_for(user_id)
        totals: dict[str, float] = {}
        for invoice in self.invoices:
            if invoice.organization_id == org_id and invoice.status == "paid":
                month = invoice.issue_date[:7]
                totals[month] = totals.get(month, 0.0) + invoice.total_amount
        return [
            RevenueMonth(month=month, revenue=amount, target=self.MONTHLY_TARGET)
            for month, amount in sorted(totals.items())
        ]

    def _seed(self, org_id: str) -> None:
        """Create demo data relative to today."""
        today = datetime.now(UTC).date()

        def days(offset: int) -> str:
            return (today + timedelta(days=offset)).isoformat()

        def month_start(months_back: int) -> date:
            year, month = today.year, today.month - months_back
            while month <= 0:
                month += 12
                year -= 1
            return date(year, month, 5)

        self.projects = [
            Project("proj_website", org_id, "Website Redesign", "Refresh the marketing site", "active", "high",
                    65, 15000, 9200, days(-60), days(30), tags=["marketing"]),
            Project("proj_mobile", org_id, "Mobile App Launch", "Ship the customer app", "active", "urgent",
                    40, 42000, 18500, days(-45), days(75), tags=["product"]),
            Project("proj_crm", org_id, "CRM Migration", "Move contacts to the new CRM", "completed", "medium",
                    100, 8000, 7600, days(-120), days(-20), tags=["operations"]),
        ]
        self.tasks = [
            Task("task_1", org_id, "Finalize homepage copy", status="in_progress", priority="high",
                 due_date=days(3), project_id="proj_website", project_name="Website Redesign"),
            Task("task_2", org_id, "QA checkout flow", status="todo", priority="urgent",
                 due_date=days(-2), project_id="proj_mobile", project_name="Mobile App Launch"),
            Task("task_3", org_id, "Export legacy contacts", status="done", priority="medium",
                 due_date=days(-25), project_id="proj_crm", project_name="CRM Migration"),
            Task("task_4", org_id, "Prepare Q3 board deck", status="todo", priority="high", due_date=days(10)),
            Task("task_5", org_id, "Renew insurance policy", status="blocked", priority="low", due_date=days(-5)),
            Task("task_6", org_id, "App store screenshots", status="review", priority="medium",
                 due_date=days(6), project_id="proj_mobile", project_name="Mobile App Launch"),
        ]
        self.customers = [
            Customer("cust_1", org_id, "Acme Corp", "ops@acme.example", "Acme Corp", "Austin", "active"),
            Customer("cust_2", org_id, "Globex", "billing@globex.example", "Globex", "Denver", "active"),
            Customer("cust_3", org_id, "Jane Park", "jane@park.example", None, "Seattle", "lead", "individual"),
            Customer("cust_4", org_id, "Initech", "it@initech.example", "Initech", "Dallas", "inactive"),
        ]
        self.invoices = [
            Invoice("inv_1", org_id, "INV-1001", "paid", 12500, month_start(2).isoformat(), days(-40)),
            Invoice("inv_2", org_id, "INV-1002", "paid", 18250, month_start(1).isoformat(), days(-10)),
            Invoice("inv_3", org_id, "INV-1003", "paid", 21400, month_start(0).isoformat(), days(20)),
            Invoice("inv_4", org_id, "INV-1004", "sent", 7300, days(-3), days(27)),
            Invoice("inv_5", org_id, "INV-1005", "overdue", 4100, days(-50), days(-20)),
        ]
        self.expenses = [
            Expense("exp_1", org_id, 2400),
            Expense("exp_2", org_id, 14800),
            Expense("exp_3", org_id, 1350),
        ]
        self.cash_flow = [
            CashFlowEntry("cf_1", org_id, "income", 12500, "completed"),
            CashFlowEntry("cf_2", org_id, "income", 18250, "completed"),
            CashFlowEntry("cf_3", org_id, "expense", 14800, "completed"),
            CashFlowEntry("cf_4", org_id, "expense", 2400, "completed"),
            CashFlowEntry("cf_5", org_id, "income", 7300, "pending"),
        ]
        self.time_entries = [
            TimeEntry("te_1", org_id, self.DEMO_USER_ID, 6 * 3600, True, 120),
            TimeEntry("te_2", org_id, self.DEMO_USER_ID, 3 * 3600, False),
            TimeEntry("te_3", org_id, self.DEMO_USER_ID, 4 * 3600 + 1800, True, 95),
        ]
