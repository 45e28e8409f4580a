#!/usr/bin/env python3
"""Tests for fleet-wide compliance aggregation."""

from datetime import date

from fleetguard import (
    DocFile,
    Status,
    Task,
    Vehicle,
    dashboard_summary,
    fleet_compliance_percent,
    overdue_documents,
    status_counts,
    upcoming_expiries,
    vehicle_health,
)
from fleetguard.compliance import month_labels

TODAY = date(2026, 10, 17)


def vehicle_with(plate, expiries=(), files=0):
    vehicle = Vehicle(f"veh_{plate}", f"Unit {plate}", plate)
    for doc, expiry in zip(vehicle.documents, expiries):
        doc.merge({"expiry_date": expiry})
    for doc in vehicle.documents[:files]:
        doc.merge({"file": DocFile("#", f"{doc.type.value}.pdf")})
    return vehicle


class TestFleetCompliancePercent:
    """Tests for fleet_compliance_percent."""

    def test_empty_fleet_is_zero(self):
        assert fleet_compliance_percent([]) == 0

    def test_mean_rounded(self):
        fleet = [vehicle_with("A", files=5), vehicle_with("B", files=0), vehicle_with("C", files=1)]
        # (100 + 0 + 20) / 3 = 40
        assert fleet_compliance_percent(fleet) == 40

    def test_half_rounds_up(self):
        fleet = [vehicle_with("A", files=1)] + [vehicle_with(str(i)) for i in range(7)]
        # 20 / 8 = 2.5
        assert fleet_compliance_percent(fleet) == 3


class TestStatusCounts:
    """Tests for status_counts."""

    def test_sums_to_five_per_vehicle(self):
        fleet = [
            vehicle_with("A", ["2026-10-01", "2026-11-01", "2027-05-01"]),
            vehicle_with("B"),
        ]
        counts = status_counts(fleet, TODAY)
        assert sum(counts.values()) == 10
        assert counts[Status.EXPIRED] == 1
        assert counts[Status.EXPIRING] == 1
        assert counts[Status.VALID] == 1
        assert counts[Status.MISSING] == 7

    def test_every_status_present(self):
        assert set(status_counts([], TODAY)) == set(Status)


class TestVehicleHealth:
    """Tests for vehicle_health."""

    def test_lowest_compliance_first(self):
        fleet = [vehicle_with("A", files=5), vehicle_with("B", files=2)]
        assert [h.plate for h in vehicle_health(fleet, TODAY)] == ["B", "A"]

    def test_worst_status_breaks_ties(self):
        valid = ["2027-05-01"] * 5
        fleet = [vehicle_with("A", valid, files=5), vehicle_with("B", ["2026-10-01"] + valid[1:], files=5)]
        rows = vehicle_health(fleet, TODAY)
        assert [h.plate for h in rows] == ["B", "A"]
        assert rows[0].worst == Status.EXPIRED


class TestOverdueDocuments:
    """Tests for overdue_documents."""

    def test_earliest_first(self):
        fleet = [
            vehicle_with("A", ["2026-10-10"]),
            vehicle_with("B", ["2026-09-01", "2027-01-01"]),
        ]
        rows = overdue_documents(fleet, TODAY)
        assert [(r.plate, r.document.expiry_date) for r in rows] == [
            ("B", "2026-09-01"),
            ("A", "2026-10-10"),
        ]

    def test_expiring_is_not_overdue(self):
        assert overdue_documents([vehicle_with("A", ["2026-10-17"])], TODAY) == []


class TestUpcomingExpiries:
    """Tests for upcoming_expiries."""

    def test_buckets_by_month(self):
        fleet = [
            vehicle_with("A", ["2026-10-01", "2026-10-30", "2026-11-15", "2027-03-31", "2027-04-01"]),
        ]
        assert upcoming_expiries(fleet, TODAY) == [2, 1, 0, 0, 0, 1]

    def test_ignores_past_months_and_missing(self):
        fleet = [vehicle_with("A", ["2026-09-30", None])]
        assert upcoming_expiries(fleet, TODAY) == [0] * 6

    def test_month_labels(self):
        assert month_labels(TODAY) == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]


class TestDashboardSummary:
    """Tests for dashboard_summary."""

    def test_headline_figures(self):
        fleet = [vehicle_with("A", ["2026-10-01"], files=5), vehicle_with("B")]
        tasks = [Task("t1", "a"), Task("t2", "b", completed=True), Task("t3", "c")]
        summary = dashboard_summary(fleet, tasks, TODAY)
        assert summary.vehicle_count == 2
        assert summary.open_tasks == 2
        assert summary.completed_tasks == 1
        assert summary.document_count == 10
        assert summary.fleet_compliance == 50
        assert len(summary.overdue) == 1
        assert len(summary.upcoming) == 6

    def test_empty_fleet(self):
        summary = dashboard_summary([], [], TODAY)
        assert summary.vehicle_count == 0
        assert summary.fleet_compliance == 0
        assert summary.document_count == 0
