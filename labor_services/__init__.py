"""
labor_services -- Package init and public API.

Responsibility:
    Caller-facing surface of the reporting engine: the ``ReportingService``
    facade that owns transaction boundaries, the dashboard, the
    scheduler-driven dispatch cycle and application bootstrap.

Architecture position:
    Services -- outermost layer over labor_batch, labor_events and
    labor_kernel.  Nothing inside those packages imports from here.
"""

from labor_services.bootstrap import import_all_models, init_reporting
from labor_services.dashboard import Dashboard, DashboardService
from labor_services.dispatch import DispatchCycle, DispatchReport
from labor_services.reporting_service import ReportingService

__all__ = [
    "Dashboard",
    "DashboardService",
    "DispatchCycle",
    "DispatchReport",
    "ReportingService",
    "import_all_models",
    "init_reporting",
]
