"""
Fleet document compliance models.

This package provides the compliance core for a trucking fleet:
- Status: Document lifecycle states (MISSING, VALID, EXPIRING, EXPIRED)
- classify / classify_license: Expiry date classifiers
- Document, Vehicle: The five-slot compliance binder and its owner
- Task, Driver, AssignmentDirectory: Reminders, people and who drives what
- apply_patch / on_transition: Document mutation and renewal task generation
- FleetRegistry: Store-backed aggregate root tying it all together
"""

from .status import Status, worst_status
from .calculations import (
    EXPIRING_WINDOW_DAYS,
    LICENSE_EXPIRING_WINDOW_DAYS,
    classify,
    classify_license,
    days_until,
    parse_date,
)
from .document import DOC_TYPES, DocFile, DocType, Document
from .vehicle import Vehicle, empty_binder
from .task import Task
from .driver import Driver
from .assignments import AssignmentDirectory
from .transition import Transition
from .mutation import apply_patch
from .tasks import on_transition, renewal_title
from .compliance import (
    compliance_percent,
    dashboard_summary,
    fleet_compliance_percent,
    overdue_documents,
    status_counts,
    upcoming_expiries,
    vehicle_health,
)
from .csv_import import VehicleRow, parse_vehicle_csv
from .errors import CheckoutError, ReportError, ValidationError
from .store import JsonFileStore, MemoryStore
from .registry import FleetRegistry

__all__ = [
    "Status",
    "worst_status",
    "EXPIRING_WINDOW_DAYS",
    "LICENSE_EXPIRING_WINDOW_DAYS",
    "classify",
    "classify_license",
    "days_until",
    "parse_date",
    "DOC_TYPES",
    "DocFile",
    "DocType",
    "Document",
    "Vehicle",
    "empty_binder",
    "Task",
    "Driver",
    "AssignmentDirectory",
    "Transition",
    "apply_patch",
    "on_transition",
    "renewal_title",
    "compliance_percent",
    "dashboard_summary",
    "fleet_compliance_percent",
    "overdue_documents",
    "status_counts",
    "upcoming_expiries",
    "vehicle_health",
    "VehicleRow",
    "parse_vehicle_csv",
    "CheckoutError",
    "ReportError",
    "ValidationError",
    "JsonFileStore",
    "MemoryStore",
    "FleetRegistry",
]
