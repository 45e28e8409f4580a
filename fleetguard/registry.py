"""FleetRegistry - the store-backed aggregate root for the compliance core."""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from . import loader
from .assignments import AssignmentDirectory
from .csv_import import VehicleRow
from .document import DocFile, DocType, Document
from .driver import Driver
from .errors import ValidationError
from .ids import new_id
from .mutation import apply_patch, find_vehicle
from .store import MemoryStore
from .task import Task
from .tasks import on_transition
from .transition import Transition
from .vehicle import Vehicle, empty_binder

logger = logging.getLogger(__name__)

SEED_PATH = Path(__file__).parent / "seed.yaml"

FLEET_KEYS = (
    loader.VEHICLES_KEY,
    loader.TASKS_KEY,
    loader.DRIVERS_KEY,
    loader.ASSIGNMENTS_KEY,
)

DRIVER_FIELDS = (
    "name",
    "email",
    "employee_number",
    "license_number",
    "license_class",
    "license_expiry",
)


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip text; empty becomes None. Non-text raises ValidationError."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Expected text, got {type(value).__name__}.")
    value = value.strip()
    return value or None


class FleetRegistry:
    """
    Vehicles, tasks, drivers and assignments held in one store.

    Each collection is read whole by hydrate() and written back whole after
    every mutation that touches it. Pass `today` to pin the date used for
    status derivation (defaults to the real date on every call).
    """

    def __init__(self, store=None, today: Optional[date] = None):
        self.store = store if store is not None else MemoryStore()
        self._today = today
        self.vehicles: List[Vehicle] = []
        self.tasks: List[Task] = []
        self.drivers: List[Driver] = []
        self.assignments = AssignmentDirectory()

    @property
    def today(self) -> date:
        return self._today or date.today()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def hydrate(self, seed: bool = True) -> "FleetRegistry":
        """
        Load every collection from the store.

        When seed is True and the store holds none of the fleet collections,
        the demo fleet from seed.yaml is loaded and written back. A store
        with any collection present is loaded as is.
        """
        if seed and all(self.store.get(key) is None for key in FLEET_KEYS):
            self.load_seed()
            self.save()
            return self

        self.vehicles = loader.load_vehicles(self.store)
        self.tasks = loader.load_tasks(self.store)
        self.drivers = loader.load_drivers(self.store)
        self.assignments = loader.load_assignments(self.store)
        return self

    def load_seed(self, path: Path = SEED_PATH) -> None:
        """Replace in-memory state with the demo fleet."""
        with open(path) as fp:
            data = yaml.safe_load(fp) or {}

        self.vehicles = []
        for dct in data.get("vehicles") or []:
            vehicle = Vehicle(
                new_id("veh"),
                dct.get("name") or dct["plate"],
                dct["plate"],
                vin=dct.get("vin"),
                make=dct.get("make"),
                model=dct.get("model"),
                province=dct.get("province"),
                created_at=self.today.isoformat(),
            )
            for doc_dct in dct.get("documents") or []:
                slot = vehicle.get_document_by_type(DocType(doc_dct["type"]))
                slot.merge(
                    {
                        "issue_date": doc_dct.get("issueDate"),
                        "expiry_date": doc_dct.get("expiryDate"),
                        "file": doc_dct.get("file"),
                    }
                )
            self.vehicles.append(vehicle)

        self.tasks = []
        for dct in data.get("tasks") or []:
            vehicle = self.find_by_plate(dct.get("plate", ""))
            doc = vehicle.get_document_by_type(dct["docType"]) if vehicle else None
            self.tasks.append(
                Task(
                    new_id("task"),
                    dct["title"],
                    vehicle.id if vehicle else None,
                    doc.id if doc else None,
                    dct.get("dueDate"),
                    self.today.isoformat(),
                )
            )
        self.drivers = []
        self.assignments = AssignmentDirectory()

    def save(self) -> None:
        loader.save_vehicles(self.store, self.vehicles)
        loader.save_tasks(self.store, self.tasks)
        loader.save_drivers(self.store, self.drivers)
        loader.save_assignments(self.store, self.assignments)

    def reset(self) -> None:
        """Drop all state, in memory and in the store."""
        for key in FLEET_KEYS:
            self.store.delete(key)
        self.vehicles = []
        self.tasks = []
        self.drivers = []
        self.assignments = AssignmentDirectory()

    # =========================================================================
    # Vehicles
    # =========================================================================

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return find_vehicle(self.vehicles, vehicle_id)

    def find_by_plate(self, plate: str) -> Optional[Vehicle]:
        plate = plate.strip().lower()
        for vehicle in self.vehicles:
            if vehicle.plate.lower() == plate:
                return vehicle
        return None

    def search_vehicles(self, query: str) -> List[Vehicle]:
        return [v for v in self.vehicles if v.matches(query)]

    def _new_vehicle(
        self,
        plate: str,
        name: Optional[str] = None,
        vin: Optional[str] = None,
        make: Optional[str] = None,
        model: Optional[str] = None,
        province: Optional[str] = None,
    ) -> Vehicle:
        plate = _clean(plate)
        if not plate:
            raise ValidationError("Plate is required.")
        return Vehicle(
            new_id("veh"),
            _clean(name) or plate,
            plate,
            empty_binder(),
            self.today.isoformat(),
            vin=_clean(vin),
            make=_clean(make),
            model=_clean(model),
            province=_clean(province),
        )

    def add_vehicle(
        self,
        plate: str,
        name: Optional[str] = None,
        vin: Optional[str] = None,
        make: Optional[str] = None,
        model: Optional[str] = None,
        province: Optional[str] = None,
    ) -> Vehicle:
        """Create a vehicle with an empty binder. Name defaults to the plate."""
        vehicle = self._new_vehicle(plate, name, vin, make, model, province)
        self.vehicles.append(vehicle)
        loader.save_vehicles(self.store, self.vehicles)
        logger.info("Added vehicle %s", vehicle.plate)
        return vehicle

    def add_vehicles_bulk(self, rows: Iterable[VehicleRow]) -> List[Vehicle]:
        """Create one vehicle per imported row; all rows are checked first."""
        added = [
            self._new_vehicle(r.plate, r.name, r.vin, r.make, r.model, r.province)
            for r in rows
        ]
        if not added:
            return []
        self.vehicles.extend(added)
        loader.save_vehicles(self.store, self.vehicles)
        logger.info("Imported %d vehicles", len(added))
        return added

    # =========================================================================
    # Documents
    # =========================================================================

    def apply_patch(
        self, vehicle_id: str, doc_id: str, patch: Dict[str, Any]
    ) -> Tuple[Optional[Vehicle], Optional[Transition]]:
        """Run the mutation engine and persist the vehicles on success."""
        vehicle, transition = apply_patch(
            self.vehicles, vehicle_id, doc_id, patch, self.today
        )
        if vehicle is not None:
            loader.save_vehicles(self.store, self.vehicles)
        return vehicle, transition

    def set_document(
        self, vehicle_id: str, doc_id: str, patch: Dict[str, Any]
    ) -> Optional[Task]:
        """
        Patch a document and react to its transition.

        Returns the renewal task created for it, if any. Stale targets are
        a no-op.
        """
        vehicle, transition = self.apply_patch(vehicle_id, doc_id, patch)
        if vehicle is None or transition is None:
            return None

        task = on_transition(
            self.tasks,
            transition.vehicle_id,
            transition.doc_id,
            transition.old_status,
            transition.new_status,
            transition.doc_type,
            vehicle.plate,
            transition.expiry_date,
            self.today,
        )
        if task is not None:
            loader.save_tasks(self.store, self.tasks)
        return task

    def replace_document(
        self,
        vehicle_id: str,
        doc_id: str,
        issue_date: Optional[str],
        expiry_date: Optional[str],
        file: Optional[DocFile],
    ) -> Optional[Task]:
        """Overwrite all three editable fields of a document."""
        return self.set_document(
            vehicle_id,
            doc_id,
            {"issue_date": issue_date, "expiry_date": expiry_date, "file": file},
        )

    def upsert_document_by_type(
        self, vehicle_id: str, doc_type: DocType, patch: Dict[str, Any]
    ) -> Optional[Task]:
        """Patch the slot of a given type; unknown vehicles are a no-op."""
        vehicle = self.get_vehicle(vehicle_id)
        if vehicle is None:
            return None
        slot = vehicle.get_document_by_type(doc_type)
        if slot is None:
            return None
        return self.set_document(vehicle_id, slot.id, patch)

    def all_documents(self) -> List[Tuple[Vehicle, Document]]:
        return [(v, d) for v in self.vehicles for d in v.documents]

    # =========================================================================
    # Tasks
    # =========================================================================

    @property
    def open_tasks(self) -> List[Task]:
        return [t for t in self.tasks if not t.completed]

    @property
    def completed_tasks(self) -> List[Task]:
        return [t for t in self.tasks if t.completed]

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def add_task(
        self,
        title: str,
        vehicle_id: Optional[str] = None,
        doc_id: Optional[str] = None,
        due_date: Optional[str] = None,
    ) -> Task:
        """Create a manual task."""
        title = _clean(title)
        if not title:
            raise ValidationError("Task title is required.")
        task = Task(
            new_id("task"),
            title,
            vehicle_id,
            doc_id,
            due_date,
            self.today.isoformat(),
        )
        self.tasks.append(task)
        loader.save_tasks(self.store, self.tasks)
        return task

    def toggle_task_completed(self, task_id: str, done: bool) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None
        task.completed = done
        loader.save_tasks(self.store, self.tasks)
        return task

    def delete_task(self, task_id: str) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        if len(self.tasks) == before:
            return False
        loader.save_tasks(self.store, self.tasks)
        return True

    def task_plate(self, task: Task) -> str:
        """Plate of the task's vehicle, '-' when absent or deleted."""
        vehicle = self.get_vehicle(task.vehicle_id) if task.vehicle_id else None
        return vehicle.plate if vehicle else "-"

    # =========================================================================
    # Drivers
    # =========================================================================

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        for driver in self.drivers:
            if driver.id == driver_id:
                return driver
        return None

    def find_driver_by_email(self, email: str) -> Optional[Driver]:
        key = email.strip().lower()
        for driver in self.drivers:
            if driver.email_key == key:
                return driver
        return None

    def search_drivers(self, query: str) -> List[Driver]:
        return [d for d in self.drivers if d.matches(query)]

    def add_driver(
        self,
        name: str,
        email: str,
        employee_number: Optional[str] = None,
        license_number: Optional[str] = None,
        license_class: Optional[str] = None,
        license_expiry: Optional[str] = None,
    ) -> Driver:
        """Create a driver. Name and email are required; email must be unique."""
        name, email = _clean(name), _clean(email)
        if not name or not email:
            raise ValidationError("Driver name and email are required.")
        if self.find_driver_by_email(email):
            raise ValidationError(f"A driver with email {email} already exists.")
        driver = Driver(
            new_id("driver"),
            name,
            email,
            _clean(employee_number),
            _clean(license_number),
            _clean(license_class),
            _clean(license_expiry),
        )
        self.drivers.append(driver)
        loader.save_drivers(self.store, self.drivers)
        return driver

    def update_driver(self, driver_id: str, **fields: Optional[str]) -> Optional[Driver]:
        """
        Edit a driver's fields.

        Only keys in DRIVER_FIELDS are accepted. Name and email cannot be
        blanked, and a new email must not belong to another driver.
        """
        driver = self.get_driver(driver_id)
        if driver is None:
            return None
        unknown = set(fields) - set(DRIVER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown driver fields: {', '.join(sorted(unknown))}")

        updates = {k: _clean(v) for k, v in fields.items()}
        if "name" in updates and not updates["name"]:
            raise ValidationError("Driver name is required.")
        if "email" in updates:
            if not updates["email"]:
                raise ValidationError("Driver email is required.")
            other = self.find_driver_by_email(updates["email"])
            if other is not None and other.id != driver.id:
                raise ValidationError(
                    f"A driver with email {updates['email']} already exists."
                )

        for key, value in updates.items():
            setattr(driver, key, value)
        loader.save_drivers(self.store, self.drivers)
        return driver

    def remove_driver(self, driver_id: str) -> bool:
        """Delete a driver. Assignments and tasks are left in place."""
        before = len(self.drivers)
        self.drivers = [d for d in self.drivers if d.id != driver_id]
        if len(self.drivers) == before:
            return False
        loader.save_drivers(self.store, self.drivers)
        return True

    # =========================================================================
    # Assignments
    # =========================================================================

    def assign(self, email: str, vehicle_id: str) -> None:
        self.assignments.assign(email, vehicle_id)
        loader.save_assignments(self.store, self.assignments)

    def unassign(self, email: str, vehicle_id: str) -> None:
        self.assignments.unassign(email, vehicle_id)
        loader.save_assignments(self.store, self.assignments)

    def assigned_vehicles(self, email: str) -> List[Vehicle]:
        """Live vehicles assigned to email, in fleet order; stale ids dropped."""
        ids = self.assignments.assigned_vehicles(email)
        return [v for v in self.vehicles if v.id in ids]
