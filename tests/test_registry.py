#!/usr/bin/env python3
"""Tests for FleetRegistry."""

from datetime import date

import pytest

from fleetguard import (
    DocFile,
    DocType,
    FleetRegistry,
    JsonFileStore,
    MemoryStore,
    Status,
    ValidationError,
    VehicleRow,
)
from fleetguard import loader

TODAY = date(2026, 10, 17)


@pytest.fixture
def registry():
    """Empty fleet over an in-memory store."""
    return FleetRegistry(MemoryStore(), today=TODAY).hydrate(seed=False)


def reload(registry):
    return FleetRegistry(registry.store, today=TODAY).hydrate(seed=False)


# =============================================================================
# Lifecycle
# =============================================================================


class TestHydrate:
    """Tests for hydrate and seeding."""

    def test_seeds_empty_store(self):
        registry = FleetRegistry(MemoryStore(), today=TODAY).hydrate()
        assert [v.plate for v in registry.vehicles] == ["CAVR-102", "AZTR-221"]
        assert registry.store.get(loader.VEHICLES_KEY) is not None

    def test_seed_task_references_document(self):
        registry = FleetRegistry(MemoryStore(), today=TODAY).hydrate()
        (task,) = registry.tasks
        vehicle = registry.get_vehicle(task.vehicle_id)
        assert vehicle.plate == "CAVR-102"
        assert vehicle.get_document(task.doc_id).type == DocType.REGISTRATION

    def test_seeded_vehicle_is_fully_filed(self):
        registry = FleetRegistry(MemoryStore(), today=TODAY).hydrate()
        assert registry.find_by_plate("cavr-102").compliance_percent() == 100
        assert registry.find_by_plate("AZTR-221").compliance_percent() == 0

    def test_does_not_reseed(self):
        store = MemoryStore()
        registry = FleetRegistry(store, today=TODAY).hydrate()
        registry.vehicles = []
        registry.save()
        assert FleetRegistry(store, today=TODAY).hydrate().vehicles == []

    def test_no_seed_leaves_store_untouched(self):
        store = MemoryStore()
        FleetRegistry(store, today=TODAY).hydrate(seed=False)
        assert list(store.keys()) == []

    def test_existing_collection_blocks_seed(self):
        registry = FleetRegistry(MemoryStore(), today=TODAY).hydrate()
        registry.reset()
        registry.add_driver("Sam", "sam@example.com")
        registry = FleetRegistry(registry.store, today=TODAY).hydrate()
        assert registry.vehicles == []
        assert registry.find_driver_by_email("sam@example.com").name == "Sam"

    def test_reset(self, registry):
        registry.add_vehicle("ABC-1")
        registry.reset()
        assert registry.vehicles == []
        assert registry.store.get(loader.VEHICLES_KEY) is None

    def test_today_defaults_to_real_date(self):
        assert FleetRegistry().today == date.today()


# =============================================================================
# Vehicles
# =============================================================================


class TestVehicles:
    """Tests for adding and finding vehicles."""

    def test_add_vehicle(self, registry):
        vehicle = registry.add_vehicle(" ABC-1 ", make="Volvo", vin="  ")
        assert vehicle.plate == "ABC-1"
        assert vehicle.name == "ABC-1"
        assert vehicle.vin is None
        assert vehicle.created_at == "2026-10-17"
        assert len(vehicle.documents) == 5
        assert reload(registry).get_vehicle(vehicle.id).make == "Volvo"

    def test_add_vehicle_requires_plate(self, registry):
        with pytest.raises(ValidationError):
            registry.add_vehicle("  ")

    def test_add_vehicles_bulk(self, registry):
        added = registry.add_vehicles_bulk(
            [VehicleRow("ABC-1", name="Unit 1"), VehicleRow("ABC-2", make="Mack")]
        )
        assert [v.plate for v in added] == ["ABC-1", "ABC-2"]
        assert added[0].name == "Unit 1"
        assert len(reload(registry).vehicles) == 2

    def test_bulk_all_or_nothing(self, registry):
        with pytest.raises(ValidationError):
            registry.add_vehicles_bulk([VehicleRow("ABC-1"), VehicleRow("")])
        assert registry.vehicles == []

    def test_search(self, registry):
        registry.add_vehicle("ABC-1", make="Volvo")
        registry.add_vehicle("XYZ-2", make="Mack")
        assert [v.plate for v in registry.search_vehicles("volvo")] == ["ABC-1"]
        assert len(registry.search_vehicles("")) == 2


# =============================================================================
# Documents and tasks
# =============================================================================


class TestSetDocument:
    """Tests for set_document and task generation."""

    def test_entering_expiring_creates_one_task(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.get_document_by_type(DocType.INSURANCE)

        task = registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-01"})
        assert task.title == "Renew Insurance for ABC-1"
        assert task.due_date == "2026-11-01"

        # Still expiring: no second task
        assert registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-05"}) is None
        assert len(registry.tasks) == 1

    def test_task_persisted(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[0]
        registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-01"})
        (task,) = reload(registry).tasks
        assert task.doc_id == doc.id

    def test_completed_then_repatched_within_window(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[0]
        task = registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-01"})
        registry.toggle_task_completed(task.id, True)
        assert registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-02"}) is None
        assert len(registry.tasks) == 1

    def test_renewed_then_expiring_again(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[0]
        task = registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-01"})
        registry.toggle_task_completed(task.id, True)
        registry.set_document(vehicle.id, doc.id, {"expiry_date": "2027-11-01"})
        assert registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-03"}) is not None
        assert len(registry.tasks) == 2

    def test_valid_or_expired_create_nothing(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        registry.set_document(vehicle.id, vehicle.documents[0].id, {"expiry_date": "2027-11-01"})
        registry.set_document(vehicle.id, vehicle.documents[1].id, {"expiry_date": "2026-01-01"})
        assert registry.tasks == []

    def test_stale_target_is_noop(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        assert registry.set_document("veh_gone", vehicle.documents[0].id, {"expiry_date": "2026-11-01"}) is None
        assert registry.set_document(vehicle.id, "doc_gone", {"expiry_date": "2026-11-01"}) is None
        assert registry.tasks == []

    def test_document_change_persisted(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[2]
        registry.set_document(vehicle.id, doc.id, {"file": DocFile("f/cvor.pdf", "cvor.pdf")})
        loaded = reload(registry).get_vehicle(vehicle.id)
        assert loaded.get_document(doc.id).file == DocFile("f/cvor.pdf", "cvor.pdf")
        assert loaded.compliance_percent() == 20

    def test_replace_document_clears_omitted(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[0]
        registry.set_document(vehicle.id, doc.id, {"issue_date": "2025-01-01", "expiry_date": "2027-01-01"})
        registry.replace_document(vehicle.id, doc.id, None, "2027-06-01", None)
        assert doc.issue_date is None
        assert doc.expiry_date == "2027-06-01"

    def test_upsert_by_type(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        task = registry.upsert_document_by_type(
            vehicle.id, DocType.PM_SERVICE, {"expiry_date": "2026-10-20"}
        )
        assert task.title == "Renew PM Service for ABC-1"
        doc = vehicle.get_document_by_type(DocType.PM_SERVICE)
        assert doc.status_as_of(TODAY) == Status.EXPIRING

    def test_upsert_unknown_vehicle(self, registry):
        assert registry.upsert_document_by_type("veh_gone", DocType.CVOR, {}) is None

    def test_all_documents(self, registry):
        registry.add_vehicle("ABC-1")
        registry.add_vehicle("ABC-2")
        assert len(registry.all_documents()) == 10


class TestTasks:
    """Tests for task management."""

    def test_add_task(self, registry):
        task = registry.add_task("Call insurer")
        assert task.created_at == "2026-10-17"
        assert registry.open_tasks == [task]

    def test_add_task_requires_title(self, registry):
        with pytest.raises(ValidationError):
            registry.add_task(" ")

    def test_toggle(self, registry):
        task = registry.add_task("Call insurer")
        registry.toggle_task_completed(task.id, True)
        assert registry.completed_tasks == [task]
        assert reload(registry).completed_tasks[0].id == task.id
        registry.toggle_task_completed(task.id, False)
        assert registry.open_tasks == [task]

    def test_toggle_unknown(self, registry):
        assert registry.toggle_task_completed("nope", True) is None

    def test_delete(self, registry):
        task = registry.add_task("Call insurer")
        assert registry.delete_task(task.id)
        assert not registry.delete_task(task.id)
        assert reload(registry).tasks == []

    def test_task_plate(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        assert registry.task_plate(registry.add_task("x", vehicle.id)) == "ABC-1"
        assert registry.task_plate(registry.add_task("y", "veh_gone")) == "-"
        assert registry.task_plate(registry.add_task("z")) == "-"


# =============================================================================
# Drivers and assignments
# =============================================================================


class TestDrivers:
    """Tests for driver management."""

    def test_add_driver(self, registry):
        driver = registry.add_driver("Sam Lee", "sam@example.com", license_class="AZ")
        assert driver.license_class == "AZ"
        assert reload(registry).find_driver_by_email("SAM@example.com").id == driver.id

    def test_add_driver_requires_name_and_email(self, registry):
        with pytest.raises(ValidationError):
            registry.add_driver("", "sam@example.com")
        with pytest.raises(ValidationError):
            registry.add_driver("Sam", "")

    def test_non_text_fields_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.add_driver(["Sam"], "sam@example.com")
        with pytest.raises(ValidationError):
            registry.add_vehicle(7)
        driver = registry.add_driver("Sam", "sam@example.com")
        with pytest.raises(ValidationError):
            registry.update_driver(driver.id, license_class=3)
        assert registry.drivers == [driver]
        assert reload(registry).get_driver(driver.id).license_class is None

    def test_duplicate_email(self, registry):
        registry.add_driver("Sam", "sam@example.com")
        with pytest.raises(ValidationError):
            registry.add_driver("Sam Two", "SAM@example.com")

    def test_update_driver(self, registry):
        driver = registry.add_driver("Sam", "sam@example.com")
        registry.update_driver(driver.id, license_expiry="2026-12-01")
        assert driver.license_status(TODAY) == Status.EXPIRING

    def test_update_rejects_unknown_field(self, registry):
        driver = registry.add_driver("Sam", "sam@example.com")
        with pytest.raises(ValidationError):
            registry.update_driver(driver.id, id="other")

    def test_update_rejects_taken_email(self, registry):
        registry.add_driver("Sam", "sam@example.com")
        other = registry.add_driver("Kim", "kim@example.com")
        with pytest.raises(ValidationError):
            registry.update_driver(other.id, email="sam@example.com")

    def test_update_unknown(self, registry):
        assert registry.update_driver("nope", name="X") is None

    def test_remove_keeps_assignments(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        driver = registry.add_driver("Sam", "sam@example.com")
        registry.assign("sam@example.com", vehicle.id)
        assert registry.remove_driver(driver.id)
        assert not registry.remove_driver(driver.id)
        assert registry.assigned_vehicles("sam@example.com") == [vehicle]

    def test_search(self, registry):
        registry.add_driver("Sam", "sam@example.com")
        registry.add_driver("Kim", "kim@example.com")
        assert [d.name for d in registry.search_drivers("KIM")] == ["Kim"]


class TestAssignments:
    """Tests for assignments and the driver portal view."""

    def test_assign_and_view(self, registry):
        first = registry.add_vehicle("ABC-1")
        second = registry.add_vehicle("ABC-2")
        registry.assign("Sam@Example.com", second.id)
        registry.assign("sam@example.com", first.id)
        assert registry.assigned_vehicles("sam@example.com") == [first, second]

    def test_persisted(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        registry.assign("sam@example.com", vehicle.id)
        assert [v.id for v in reload(registry).assigned_vehicles("sam@example.com")] == [vehicle.id]

    def test_stale_vehicle_ids_filtered(self, registry):
        registry.assign("sam@example.com", "veh_gone")
        assert registry.assigned_vehicles("sam@example.com") == []
        assert registry.assignments.assigned_vehicles("sam@example.com") == {"veh_gone"}

    def test_unassign(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        registry.assign("sam@example.com", vehicle.id)
        registry.unassign("SAM@example.com", vehicle.id)
        assert reload(registry).assigned_vehicles("sam@example.com") == []


class TestJsonFileStoreEndToEnd:
    """A full session against the directory store."""

    def test_session(self, tmp_path):
        registry = FleetRegistry(JsonFileStore(tmp_path), today=TODAY).hydrate()
        vehicle = registry.find_by_plate("AZTR-221")
        doc = vehicle.get_document_by_type(DocType.INSPECTION)
        task = registry.set_document(vehicle.id, doc.id, {"expiry_date": "2026-11-10"})
        assert task is not None

        again = FleetRegistry(JsonFileStore(tmp_path), today=TODAY).hydrate()
        assert len(again.vehicles) == 2
        assert [t.title for t in again.open_tasks] == [
            "Upload Registration for CAVR-102",
            "Renew Inspection for AZTR-221",
        ]
        loaded = again.get_vehicle(vehicle.id).get_document(doc.id)
        assert loaded.status_as_of(TODAY) == Status.EXPIRING


class TestScenarios:
    """Whole-flow checks on a fresh registry."""

    def test_valid_document_patched_into_window(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        doc = vehicle.documents[1]
        registry.set_document(vehicle.id, doc.id, {"expiry_date": "2027-06-01"})
        assert doc.status_as_of(TODAY) == Status.VALID

        patch = {"expiry_date": "2026-10-27"}
        task = registry.set_document(vehicle.id, doc.id, patch)
        assert doc.status_as_of(TODAY) == Status.EXPIRING
        assert task.due_date == "2026-10-27"
        assert not task.completed
        assert registry.set_document(vehicle.id, doc.id, patch) is None
        assert len(registry.tasks) == 1

        registry.delete_task(task.id)
        assert registry.set_document(vehicle.id, doc.id, patch) is None
        assert registry.tasks == []

    def test_create_upload_then_expire(self, registry):
        vehicle = registry.add_vehicle("ABC-1")
        assert all(d.status_as_of(TODAY) == Status.MISSING for d in vehicle.documents)
        assert vehicle.compliance_percent() == 0

        registration = vehicle.get_document_by_type(DocType.REGISTRATION)
        registry.set_document(vehicle.id, registration.id, {"file": DocFile("#", "reg.pdf")})
        assert vehicle.compliance_percent() == 20
        assert registration.status_as_of(TODAY) == Status.MISSING
        assert registry.tasks == []

        task = registry.set_document(vehicle.id, registration.id, {"expiry_date": "2026-10-22"})
        assert registration.status_as_of(TODAY) == Status.EXPIRING
        assert task.title == "Renew Registration for ABC-1"
        assert len(registry.tasks) == 1
