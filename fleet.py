#!/usr/bin/env python3
"""
Unified CLI for fleet document compliance.

Commands:
  dashboard     - Fleet compliance overview
  vehicles      - List vehicles with compliance and worst status
  add-vehicle   - Add a vehicle with an empty binder
  import        - Import vehicles from a CSV file
  docs          - Show a vehicle's document binder
  set-doc       - Update a document (dates and/or file)
  tasks         - List open and completed tasks
  task-done     - Mark a task completed (or reopen it)
  task-delete   - Delete a task
  drivers       - List drivers with license status and assignments
  add-driver    - Add a driver
  remove-driver - Remove a driver
  assign        - Assign a vehicle to a driver email
  unassign      - Remove a vehicle from a driver email
  driver-view   - Show the vehicles assigned to a driver email
  report        - Write a vehicle audit report PDF
"""

import argparse
import os
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from fleetguard import (
    DocFile,
    DocType,
    FleetRegistry,
    JsonFileStore,
    Status,
    Task,
    ValidationError,
    Vehicle,
    dashboard_summary,
    parse_date,
    parse_vehicle_csv,
)
from fleetguard.errors import ReportError
from fleetguard.log import configure_logging
from fleetguard.report import build_audit_report, local_fetcher, write_audit_report

DEFAULT_DATA_DIR = os.environ.get("FLEETGUARD_DATA_DIR", "data")

# =============================================================================
# Formatting helpers
# =============================================================================


def format_status(status: Status) -> str:
    """Status label, upper-cased when it needs attention."""
    if status in (Status.EXPIRED, Status.EXPIRING):
        return status.value.upper()
    return status.value


def format_percent(percent: int) -> str:
    return f"{percent}%"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def find_vehicle(registry: FleetRegistry, ref: str) -> Optional[Vehicle]:
    """Look a vehicle up by id, then by plate."""
    return registry.get_vehicle(ref) or registry.find_by_plate(ref)


def resolve_doc_type(name: str) -> Optional[DocType]:
    """Case-insensitive document type lookup ('pm service', 'cvor', ...)."""
    normalized = name.strip().lower()
    for doc_type in DocType:
        if doc_type.value.lower() == normalized:
            return doc_type
    return None


# =============================================================================
# Table builders
# =============================================================================


def make_vehicle_table(vehicles: List[Vehicle], today: date) -> List[List[str]]:
    """Convert vehicles to table rows."""
    return [
        [
            v.plate,
            v.name,
            v.make_model or "-",
            format_percent(v.compliance_percent()),
            format_status(v.worst_status(today)),
        ]
        for v in vehicles
    ]


def make_binder_table(vehicle: Vehicle, today: date) -> List[List[str]]:
    """Convert a vehicle's documents to table rows."""
    return [
        [
            doc.type.value,
            format_status(doc.status_as_of(today)),
            doc.issue_date or "-",
            doc.expiry_date or "-",
            truncate(doc.file.name) if doc.file else "-",
        ]
        for doc in vehicle.documents
    ]


def make_task_table(tasks: List[Task], registry: FleetRegistry) -> List[List[str]]:
    """Convert tasks to table rows."""
    return [
        [t.id, t.title, registry.task_plate(t), t.due_date or "-", t.created_at]
        for t in tasks
    ]


# =============================================================================
# Commands
# =============================================================================


def cmd_dashboard(args, registry: FleetRegistry):
    """Fleet compliance overview."""
    today = registry.today
    summary = dashboard_summary(registry.vehicles, registry.tasks, today)

    print(f"As of: {today.isoformat()}")
    print(f"Vehicles: {summary.vehicle_count}")
    print(f"Open tasks: {summary.open_tasks}")
    print(f"Fleet compliance: {format_percent(summary.fleet_compliance)}")
    print()

    counts = [[s.value, summary.counts[s]] for s in Status]
    counts.append(["Total", summary.document_count])
    print(tabulate(counts, headers=["Status", "Documents"], tablefmt="simple"))
    print()

    if summary.overdue:
        print("OVERDUE:")
        rows = [
            [o.plate, o.document.type.value, o.document.expiry_date]
            for o in summary.overdue
        ]
        print(tabulate(rows, headers=["Plate", "Document", "Expired"], tablefmt="simple"))
        print()

    if summary.health:
        print("VEHICLE HEALTH:")
        rows = [
            [h.plate, h.name, format_percent(h.percent), format_status(h.worst)]
            for h in summary.health
        ]
        print(
            tabulate(
                rows, headers=["Plate", "Name", "Compliance", "Worst"], tablefmt="simple"
            )
        )
        print()

    print("UPCOMING EXPIRIES:")
    print(tabulate([summary.upcoming], headers=summary.upcoming_labels, tablefmt="simple"))
    return 0


def cmd_vehicles(args, registry: FleetRegistry):
    """List vehicles."""
    vehicles = registry.search_vehicles(args.search or "")
    if not vehicles:
        print("No vehicles found.")
        return 0
    headers = ["Plate", "Name", "Make/Model", "Compliance", "Worst"]
    print(tabulate(make_vehicle_table(vehicles, registry.today), headers=headers, tablefmt="simple"))
    return 0


def cmd_add_vehicle(args, registry: FleetRegistry):
    """Add a vehicle."""
    try:
        vehicle = registry.add_vehicle(
            args.plate,
            name=args.name,
            vin=args.vin,
            make=args.make,
            model=args.model,
            province=args.province,
        )
    except ValidationError as e:
        print(f"Error: {e}")
        return 1
    print(f"Added {vehicle.plate} ({vehicle.id})")
    return 0


def cmd_import(args, registry: FleetRegistry):
    """Import vehicles from CSV."""
    if not args.csv_file.exists():
        print(f"Error: File not found: {args.csv_file}")
        return 1
    try:
        text = args.csv_file.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        print(f"Error: {args.csv_file} is not UTF-8 text ({e.reason} at byte {e.start})")
        return 1
    rows = parse_vehicle_csv(text)
    if not rows:
        print("No importable rows found (a plate column is required).")
        return 1

    print(f"Found {len(rows)} vehicles in {args.csv_file}:")
    for row in rows:
        print(f"  {row.plate}  {row.name or ''}".rstrip())
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    added = registry.add_vehicles_bulk(rows)
    print(f"Imported {len(added)} vehicles.")
    return 0


def cmd_docs(args, registry: FleetRegistry):
    """Show a vehicle's binder."""
    vehicle = find_vehicle(registry, args.vehicle)
    if vehicle is None:
        print(f"Error: Unknown vehicle '{args.vehicle}'")
        return 1

    print(f"Vehicle: {vehicle.plate} ({vehicle.name})")
    print(f"Compliance: {format_percent(vehicle.compliance_percent())}")
    print()
    headers = ["Document", "Status", "Issued", "Expires", "File"]
    print(tabulate(make_binder_table(vehicle, registry.today), headers=headers, tablefmt="simple"))
    return 0


def cmd_set_doc(args, registry: FleetRegistry):
    """Update one document of a vehicle."""
    vehicle = find_vehicle(registry, args.vehicle)
    if vehicle is None:
        print(f"Error: Unknown vehicle '{args.vehicle}'")
        return 1
    doc_type = resolve_doc_type(args.doc_type)
    if doc_type is None:
        print(f"Error: Unknown document type '{args.doc_type}'")
        print("\nDocument types:")
        for t in DocType:
            print(f"  {t.value}")
        return 1

    patch = {}
    for field, value in (("issue_date", args.issued), ("expiry_date", args.expires)):
        if value is None:
            continue
        if value and parse_date(value) is None:
            print(f"Error: Invalid date '{value}' (expected YYYY-MM-DD)")
            return 1
        patch[field] = value or None
    if args.clear_file:
        patch["file"] = None
    elif args.file:
        patch["file"] = DocFile(args.file, args.file_name or Path(args.file).name)

    if not patch:
        print("Nothing to update.")
        return 1

    task = registry.upsert_document_by_type(vehicle.id, doc_type, patch)
    doc = vehicle.get_document_by_type(doc_type)
    print(f"{vehicle.plate} {doc_type.value}: {doc.status_as_of(registry.today).value}")
    if task is not None:
        print(f"Created task: {task.title} (due {task.due_date})")
    return 0


def cmd_tasks(args, registry: FleetRegistry):
    """List tasks."""
    headers = ["Id", "Title", "Plate", "Due", "Created"]
    open_tasks = registry.open_tasks
    print("OPEN:")
    if open_tasks:
        print(tabulate(make_task_table(open_tasks, registry), headers=headers, tablefmt="simple"))
    else:
        print("  No open tasks.")
    if args.all:
        print()
        print("COMPLETED:")
        done = registry.completed_tasks
        if done:
            print(tabulate(make_task_table(done, registry), headers=headers, tablefmt="simple"))
        else:
            print("  No completed tasks.")
    return 0


def cmd_task_done(args, registry: FleetRegistry):
    """Complete or reopen a task."""
    task = registry.toggle_task_completed(args.task_id, not args.reopen)
    if task is None:
        print(f"Error: Unknown task '{args.task_id}'")
        return 1
    print(f"{'Reopened' if args.reopen else 'Completed'}: {task.title}")
    return 0


def cmd_task_delete(args, registry: FleetRegistry):
    """Delete a task."""
    if not registry.delete_task(args.task_id):
        print(f"Error: Unknown task '{args.task_id}'")
        return 1
    print("Task deleted.")
    return 0


def cmd_drivers(args, registry: FleetRegistry):
    """List drivers."""
    drivers = registry.search_drivers(args.search or "")
    if not drivers:
        print("No drivers found.")
        return 0
    rows = []
    for d in drivers:
        plates = [v.plate for v in registry.assigned_vehicles(d.email)]
        rows.append(
            [
                d.name,
                d.email,
                d.employee_number or "-",
                d.license_number or "-",
                d.license_class or "-",
                d.license_expiry or "-",
                format_status(d.license_status(registry.today)),
                ", ".join(plates) or "-",
            ]
        )
    headers = ["Name", "Email", "Employee #", "License #", "Class", "Expiry", "Status", "Vehicles"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_add_driver(args, registry: FleetRegistry):
    """Add a driver."""
    try:
        driver = registry.add_driver(
            args.name,
            args.email,
            employee_number=args.employee_number,
            license_number=args.license_number,
            license_class=args.license_class,
            license_expiry=args.license_expiry,
        )
    except ValidationError as e:
        print(f"Error: {e}")
        return 1
    print(f"Added driver {driver.name} <{driver.email}>")
    return 0


def cmd_remove_driver(args, registry: FleetRegistry):
    """Remove a driver by email."""
    driver = registry.find_driver_by_email(args.email)
    if driver is None:
        print(f"Error: Unknown driver '{args.email}'")
        return 1
    registry.remove_driver(driver.id)
    print(f"Removed driver {driver.name}. Existing assignments are kept.")
    return 0


def cmd_assign(args, registry: FleetRegistry):
    """Assign a vehicle to a driver email."""
    vehicle = find_vehicle(registry, args.vehicle)
    if vehicle is None:
        print(f"Error: Unknown vehicle '{args.vehicle}'")
        return 1
    registry.assign(args.email, vehicle.id)
    print(f"Assigned {vehicle.plate} to {args.email.lower()}")
    return 0


def cmd_unassign(args, registry: FleetRegistry):
    """Unassign a vehicle from a driver email."""
    vehicle = find_vehicle(registry, args.vehicle)
    vehicle_id = vehicle.id if vehicle else args.vehicle
    registry.unassign(args.email, vehicle_id)
    print(f"Unassigned {args.vehicle} from {args.email.lower()}")
    return 0


def cmd_driver_view(args, registry: FleetRegistry):
    """What a driver sees: their assigned vehicles and documents."""
    driver = registry.find_driver_by_email(args.email)
    print(f"Driver: {driver.name if driver else args.email}")
    if driver and driver.license_expiry:
        status = driver.license_status(registry.today)
        print(f"License: {driver.license_expiry} ({status.value})")
    print()

    vehicles = registry.assigned_vehicles(args.email)
    if not vehicles:
        print("No vehicles assigned.")
        return 0
    headers = ["Document", "Status", "Issued", "Expires", "File"]
    for vehicle in vehicles:
        print(f"{vehicle.plate} - {vehicle.name}")
        print(tabulate(make_binder_table(vehicle, registry.today), headers=headers, tablefmt="simple"))
        print()
    return 0


def cmd_report(args, registry: FleetRegistry):
    """Write an audit report PDF for a vehicle."""
    vehicle = find_vehicle(registry, args.vehicle)
    if vehicle is None:
        print(f"Error: Unknown vehicle '{args.vehicle}'")
        return 1
    report = build_audit_report(vehicle, local_fetcher(args.files_dir), registry.today)
    try:
        path = write_audit_report(report, args.output_dir)
    except ReportError as e:
        print(f"Error: {e}")
        return 1
    print(f"Wrote {path} ({len(report.attachments)} attachments)")
    for name in report.skipped:
        print(f"  skipped: {name}")
    return 0


# =============================================================================
# Main
# =============================================================================

COMMANDS = {
    "dashboard": cmd_dashboard,
    "vehicles": cmd_vehicles,
    "add-vehicle": cmd_add_vehicle,
    "import": cmd_import,
    "docs": cmd_docs,
    "set-doc": cmd_set_doc,
    "tasks": cmd_tasks,
    "task-done": cmd_task_done,
    "task-delete": cmd_task_delete,
    "drivers": cmd_drivers,
    "add-driver": cmd_add_driver,
    "remove-driver": cmd_remove_driver,
    "assign": cmd_assign,
    "unassign": cmd_unassign,
    "driver-view": cmd_driver_view,
    "report": cmd_report,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fleet document compliance tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s dashboard
  %(prog)s add-vehicle ABCD-123 --name "Unit 300" --make Volvo
  %(prog)s import fleet.csv --dry-run
  %(prog)s set-doc ABCD-123 insurance --expires 2026-11-01 --file ins.pdf
  %(prog)s tasks --all
  %(prog)s assign driver@example.com ABCD-123
  %(prog)s --as-of 2026-01-01 docs ABCD-123
""",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(DEFAULT_DATA_DIR),
        help="Store directory (default: $FLEETGUARD_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--as-of",
        type=str,
        help="Evaluate statuses as of this date (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Do not load demo data into an empty store",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log activity")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("dashboard", help="Fleet compliance overview")

    vehicles_parser = subparsers.add_parser("vehicles", help="List vehicles")
    vehicles_parser.add_argument("--search", type=str, help="Filter by name/plate/VIN/make/model")

    add_vehicle_parser = subparsers.add_parser("add-vehicle", help="Add a vehicle")
    add_vehicle_parser.add_argument("plate", type=str, help="License plate")
    add_vehicle_parser.add_argument("--name", type=str, help="Unit name (default: plate)")
    add_vehicle_parser.add_argument("--vin", type=str)
    add_vehicle_parser.add_argument("--make", type=str)
    add_vehicle_parser.add_argument("--model", type=str)
    add_vehicle_parser.add_argument("--province", type=str)

    import_parser = subparsers.add_parser("import", help="Import vehicles from CSV")
    import_parser.add_argument("csv_file", type=Path, help="CSV file with a plate column")
    import_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be imported without saving"
    )

    docs_parser = subparsers.add_parser("docs", help="Show a vehicle's documents")
    docs_parser.add_argument("vehicle", type=str, help="Vehicle id or plate")

    set_doc_parser = subparsers.add_parser("set-doc", help="Update a document")
    set_doc_parser.add_argument("vehicle", type=str, help="Vehicle id or plate")
    set_doc_parser.add_argument(
        "doc_type", type=str, help="Registration, Insurance, CVOR, Inspection or 'PM Service'"
    )
    set_doc_parser.add_argument("--issued", type=str, help="Issue date (YYYY-MM-DD, '' clears)")
    set_doc_parser.add_argument("--expires", type=str, help="Expiry date (YYYY-MM-DD, '' clears)")
    set_doc_parser.add_argument("--file", type=str, help="File path or URL")
    set_doc_parser.add_argument("--file-name", type=str, help="Display name for the file")
    set_doc_parser.add_argument("--clear-file", action="store_true", help="Remove the file")

    tasks_parser = subparsers.add_parser("tasks", help="List tasks")
    tasks_parser.add_argument("--all", action="store_true", help="Include completed tasks")

    task_done_parser = subparsers.add_parser("task-done", help="Complete a task")
    task_done_parser.add_argument("task_id", type=str)
    task_done_parser.add_argument("--reopen", action="store_true", help="Mark as not completed")

    task_delete_parser = subparsers.add_parser("task-delete", help="Delete a task")
    task_delete_parser.add_argument("task_id", type=str)

    drivers_parser = subparsers.add_parser("drivers", help="List drivers")
    drivers_parser.add_argument("--search", type=str, help="Filter by name/email/license")

    add_driver_parser = subparsers.add_parser("add-driver", help="Add a driver")
    add_driver_parser.add_argument("name", type=str)
    add_driver_parser.add_argument("email", type=str)
    add_driver_parser.add_argument("--employee-number", type=str)
    add_driver_parser.add_argument("--license-number", type=str)
    add_driver_parser.add_argument("--license-class", type=str, help="e.g. G, AZ, DZ")
    add_driver_parser.add_argument("--license-expiry", type=str, help="YYYY-MM-DD")

    remove_driver_parser = subparsers.add_parser("remove-driver", help="Remove a driver")
    remove_driver_parser.add_argument("email", type=str)

    assign_parser = subparsers.add_parser("assign", help="Assign a vehicle to a driver")
    assign_parser.add_argument("email", type=str)
    assign_parser.add_argument("vehicle", type=str, help="Vehicle id or plate")

    unassign_parser = subparsers.add_parser("unassign", help="Unassign a vehicle")
    unassign_parser.add_argument("email", type=str)
    unassign_parser.add_argument("vehicle", type=str, help="Vehicle id or plate")

    driver_view_parser = subparsers.add_parser("driver-view", help="Driver portal view")
    driver_view_parser.add_argument("email", type=str)

    report_parser = subparsers.add_parser("report", help="Write a vehicle audit report")
    report_parser.add_argument("vehicle", type=str, help="Vehicle id or plate")
    report_parser.add_argument(
        "--files-dir", type=Path, default=Path("."), help="Base directory for document files"
    )
    report_parser.add_argument(
        "--output-dir", type=Path, default=Path("."), help="Where to write the bundle"
    )

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("INFO" if args.verbose else "WARNING")

    today = None
    if args.as_of:
        today = parse_date(args.as_of)
        if today is None:
            print(f"Error: Invalid --as-of date '{args.as_of}'")
            return 1

    registry = FleetRegistry(JsonFileStore(args.data_dir), today=today)
    registry.hydrate(seed=not args.no_seed)

    return COMMANDS[args.command](args, registry)


if __name__ == "__main__":
    sys.exit(main() or 0)
