"""Fleet-wide compliance aggregation."""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from .calculations import parse_date, round_half_up
from .document import Document
from .status import Status
from .task import Task
from .vehicle import Vehicle


@dataclass
class VehicleHealth:
    """Compliance summary row for one vehicle."""

    vehicle_id: str
    plate: str
    name: str
    percent: int
    worst: Status


@dataclass
class OverdueItem:
    """An expired document and the vehicle it belongs to."""

    vehicle_id: str
    plate: str
    name: str
    document: Document


def compliance_percent(vehicle: Vehicle) -> int:
    return vehicle.compliance_percent()


def fleet_compliance_percent(vehicles: List[Vehicle]) -> int:
    """Mean of per-vehicle compliance, 0 for an empty fleet."""
    if not vehicles:
        return 0
    total = sum(v.compliance_percent() for v in vehicles)
    return round_half_up(total / len(vehicles))


def status_counts(
    vehicles: Iterable[Vehicle], today: Optional[date] = None
) -> Dict[Status, int]:
    """Document count per status; values sum to vehicles x 5."""
    counts = {status: 0 for status in Status}
    for vehicle in vehicles:
        for doc in vehicle.documents:
            counts[doc.status_as_of(today)] += 1
    return counts


def vehicle_health(
    vehicles: Iterable[Vehicle], today: Optional[date] = None
) -> List[VehicleHealth]:
    """Health rows, lowest compliance first, worst status breaking ties."""
    rows = [
        VehicleHealth(
            vehicle_id=v.id,
            plate=v.plate,
            name=v.name,
            percent=v.compliance_percent(),
            worst=v.worst_status(today),
        )
        for v in vehicles
    ]
    rows.sort(key=lambda r: (r.percent, -r.worst.severity))
    return rows


def overdue_documents(
    vehicles: Iterable[Vehicle], today: Optional[date] = None
) -> List[OverdueItem]:
    """Expired documents across the fleet, earliest expiry first."""
    rows = [
        OverdueItem(v.id, v.plate, v.name, doc)
        for v in vehicles
        for doc in v.documents
        if doc.status_as_of(today) == Status.EXPIRED
    ]
    rows.sort(key=lambda r: parse_date(r.document.expiry_date) or date.min)
    return rows


def upcoming_expiries(
    vehicles: Iterable[Vehicle], today: Optional[date] = None, months: int = 6
) -> List[int]:
    """
    Count expiry dates falling in each of the next calendar months.

    Bucket 0 is the current month (including dates already passed this
    month); dates before this month or beyond the window are ignored.
    """
    today = today or date.today()
    buckets = [0] * months
    for vehicle in vehicles:
        for doc in vehicle.documents:
            expiry = parse_date(doc.expiry_date)
            if expiry is None:
                continue
            delta = relativedelta(expiry.replace(day=1), today.replace(day=1))
            offset = delta.years * 12 + delta.months
            if 0 <= offset < months:
                buckets[offset] += 1
    return buckets


def month_labels(today: Optional[date] = None, months: int = 6) -> List[str]:
    """Short month names for the upcoming_expiries buckets."""
    today = today or date.today()
    return [(today + relativedelta(months=i)).strftime("%b") for i in range(months)]


@dataclass
class DashboardSummary:
    """Headline figures for the fleet dashboard."""

    vehicle_count: int
    open_tasks: int
    completed_tasks: int
    counts: Dict[Status, int]
    fleet_compliance: int
    overdue: List[OverdueItem]
    health: List[VehicleHealth]
    upcoming: List[int]
    upcoming_labels: List[str]

    @property
    def document_count(self) -> int:
        return sum(self.counts.values())


def dashboard_summary(
    vehicles: List[Vehicle], tasks: Iterable[Task], today: Optional[date] = None
) -> DashboardSummary:
    tasks = list(tasks)
    open_count = sum(1 for t in tasks if not t.completed)
    return DashboardSummary(
        vehicle_count=len(vehicles),
        open_tasks=open_count,
        completed_tasks=len(tasks) - open_count,
        counts=status_counts(vehicles, today),
        fleet_compliance=fleet_compliance_percent(vehicles),
        overdue=overdue_documents(vehicles, today),
        health=vehicle_health(vehicles, today),
        upcoming=upcoming_expiries(vehicles, today),
        upcoming_labels=month_labels(today),
    )
