"""JSON loading and saving of fleet collections."""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import yaml
from jsonschema import ValidationError, validate

from .assignments import AssignmentDirectory
from .document import DOC_TYPES, DocFile, DocType, Document
from .driver import Driver
from .ids import new_id
from .task import Task
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

VEHICLES_KEY = "fleetguard_vehicles"
TASKS_KEY = "fg_tasks"
DRIVERS_KEY = "fg_drivers"
ASSIGNMENTS_KEY = "fg_assignments"
ACCOUNTS_KEY = "fg_accounts"

SCHEMA_PATH = Path(__file__).parent / "schema.yaml"

T = TypeVar("T")

_schema: Optional[Dict[str, Any]] = None


def load_schema() -> Dict[str, Any]:
    """Load the record schema from schema.yaml (cached)."""
    global _schema
    if _schema is None:
        with open(SCHEMA_PATH) as f:
            _schema = yaml.safe_load(f)
    return _schema


def record_schema(name: str) -> Dict[str, Any]:
    """Schema for one record kind, e.g. 'vehicle' or 'task'."""
    schema = load_schema()
    return {
        "$schema": schema["$schema"],
        "$ref": f"#/definitions/{name}",
        "definitions": schema["definitions"],
    }


def validate_record(name: str, data: Any) -> None:
    """Raise jsonschema.ValidationError if data is not a valid record."""
    validate(instance=data, schema=record_schema(name))


# =============================================================================
# Record <-> dict (camelCase keys)
# =============================================================================


def _file_to_dict(file: Optional[DocFile]) -> Optional[Dict[str, str]]:
    if file is None:
        return None
    return {"url": file.url, "name": file.name}


def _document_to_dict(doc: Document) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "type": doc.type.value,
        "issueDate": doc.issue_date,
        "expiryDate": doc.expiry_date,
        "file": _file_to_dict(doc.file),
    }


def _document_from_dict(dct: Dict[str, Any]) -> Document:
    file = dct.get("file")
    return Document(
        dct["id"],
        DocType(dct["type"]),
        dct.get("issueDate"),
        dct.get("expiryDate"),
        DocFile(file["url"], file["name"]) if file else None,
    )


def _complete_binder(documents: List[Document]) -> List[Document]:
    """One document per type in binder order; missing types get empty slots."""
    by_type: Dict[DocType, Document] = {}
    for doc in documents:
        by_type.setdefault(doc.type, doc)
    return [by_type.get(t) or Document(new_id("doc"), t) for t in DOC_TYPES]


def vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": vehicle.id,
        "name": vehicle.name,
        "plate": vehicle.plate,
        "createdAt": vehicle.created_at,
        "documents": [_document_to_dict(doc) for doc in vehicle.documents],
    }
    for key, value in (
        ("vin", vehicle.vin),
        ("make", vehicle.make),
        ("model", vehicle.model),
        ("province", vehicle.province),
    ):
        if value is not None:
            d[key] = value
    return d


def vehicle_from_dict(dct: Dict[str, Any]) -> Vehicle:
    documents = [_document_from_dict(d) for d in dct.get("documents") or []]
    return Vehicle(
        dct["id"],
        dct.get("name") or dct["plate"],
        dct["plate"],
        _complete_binder(documents),
        dct.get("createdAt"),
        vin=dct.get("vin"),
        make=dct.get("make"),
        model=dct.get("model"),
        province=dct.get("province"),
    )


def task_to_dict(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "vehicleId": task.vehicle_id,
        "docId": task.doc_id,
        "dueDate": task.due_date,
        "createdAt": task.created_at,
        "completed": task.completed,
    }


def task_from_dict(dct: Dict[str, Any]) -> Task:
    return Task(
        dct["id"],
        dct["title"],
        dct.get("vehicleId"),
        dct.get("docId"),
        dct.get("dueDate"),
        dct.get("createdAt"),
        dct.get("completed", False),
    )


def driver_to_dict(driver: Driver) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": driver.id, "name": driver.name, "email": driver.email}
    for key, value in (
        ("employeeNumber", driver.employee_number),
        ("licenseNumber", driver.license_number),
        ("licenseClass", driver.license_class),
        ("licenseExpiry", driver.license_expiry),
    ):
        if value is not None:
            d[key] = value
    return d


def driver_from_dict(dct: Dict[str, Any]) -> Driver:
    return Driver(
        dct["id"],
        dct["name"],
        dct["email"],
        dct.get("employeeNumber"),
        dct.get("licenseNumber"),
        dct.get("licenseClass"),
        dct.get("licenseExpiry"),
    )


# =============================================================================
# Collections
# =============================================================================


def _read_json(store, key: str) -> Any:
    """Raw decoded value under key, or None if absent or malformed."""
    text = store.get(key)
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed JSON under %s: %s", key, e)
        return None


def load_records(
    store, key: str, record: str, parse: Callable[[Dict[str, Any]], T]
) -> List[T]:
    """
    Load a list collection, skipping records that fail schema validation.

    Missing or malformed collections load as an empty list.
    """
    data = _read_json(store, key)
    if data is None:
        return []
    if not isinstance(data, list):
        logger.warning("Ignoring %s: expected a list, got %s", key, type(data).__name__)
        return []

    items = []
    for index, dct in enumerate(data):
        try:
            validate_record(record, dct)
        except ValidationError as e:
            logger.warning("Skipping %s[%d]: %s", key, index, e.message)
            continue
        items.append(parse(dct))
    return items


def save_records(store, key: str, items: List[T], to_dict: Callable[[T], Dict]) -> None:
    """Replace a whole list collection."""
    store.set(key, json.dumps([to_dict(item) for item in items], indent=2))


def load_vehicles(store) -> List[Vehicle]:
    return load_records(store, VEHICLES_KEY, "vehicle", vehicle_from_dict)


def save_vehicles(store, vehicles: List[Vehicle]) -> None:
    save_records(store, VEHICLES_KEY, vehicles, vehicle_to_dict)


def load_tasks(store) -> List[Task]:
    return load_records(store, TASKS_KEY, "task", task_from_dict)


def save_tasks(store, tasks: List[Task]) -> None:
    save_records(store, TASKS_KEY, tasks, task_to_dict)


def load_drivers(store) -> List[Driver]:
    return load_records(store, DRIVERS_KEY, "driver", driver_from_dict)


def save_drivers(store, drivers: List[Driver]) -> None:
    save_records(store, DRIVERS_KEY, drivers, driver_to_dict)


def load_assignments(store) -> AssignmentDirectory:
    data = _read_json(store, ASSIGNMENTS_KEY)
    if data is None:
        return AssignmentDirectory()
    try:
        validate_record("assignments", data)
    except ValidationError as e:
        logger.warning("Ignoring %s: %s", ASSIGNMENTS_KEY, e.message)
        return AssignmentDirectory()
    return AssignmentDirectory(data)


def save_assignments(store, directory: AssignmentDirectory) -> None:
    store.set(ASSIGNMENTS_KEY, json.dumps(directory.to_dict(), indent=2))


def load_accounts(store) -> List[Dict[str, Any]]:
    return load_records(store, ACCOUNTS_KEY, "account", dict)


def save_accounts(store, accounts: List[Dict[str, Any]]) -> None:
    save_records(store, ACCOUNTS_KEY, accounts, dict)
