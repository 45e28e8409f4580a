"""Flask web application for fleet document compliance."""

import io
import os
from datetime import date
from functools import wraps
from pathlib import Path

from flask import Flask, g, jsonify, redirect, request, send_file, session, url_for

from fleetguard import (
    DocType,
    FleetRegistry,
    JsonFileStore,
    Status,
    ValidationError,
    Vehicle,
    dashboard_summary,
    parse_date,
    parse_vehicle_csv,
)
from fleetguard.accounts import (
    DuplicateEmailError,
    FREE_PLAN,
    activate_account,
    authenticate,
    register_account,
    url_checkout,
    url_confirm,
)
from fleetguard.errors import CheckoutError, ReportError
from fleetguard.loader import driver_to_dict, task_to_dict, vehicle_to_dict
from fleetguard.log import configure_logging
from fleetguard.report import build_audit_report, local_fetcher, report_bytes

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")

# Store directory (relative to project root unless overridden)
app.config["DATA_DIR"] = Path(
    os.environ.get("FLEETGUARD_DATA_DIR", Path(__file__).parent.parent / "data")
)
app.config["FILES_DIR"] = Path(os.environ.get("FLEETGUARD_FILES_DIR", app.config["DATA_DIR"]))
app.config["CHECKOUT"] = url_checkout(os.environ.get("FLEETGUARD_CHECKOUT_URL"))
# Looks up a checkout session_id and returns the paid customer's email
app.config["CHECKOUT_CONFIRM"] = url_confirm(os.environ.get("FLEETGUARD_CHECKOUT_CONFIRM_URL"))
# Set STORE to share one store object (tests use a MemoryStore)
app.config["STORE"] = None
# Set TODAY to pin the date used for statuses
app.config["TODAY"] = None

configure_logging(os.environ.get("LOG_LEVEL", "WARNING"))


def get_store():
    return app.config["STORE"] or JsonFileStore(app.config["DATA_DIR"])


def get_registry() -> FleetRegistry:
    """The fleet for this request, read whole from the store."""
    if "registry" not in g:
        g.registry = FleetRegistry(get_store(), today=app.config["TODAY"]).hydrate()
    return g.registry


def error(message: str, status: int = 400):
    return jsonify({"error": message}), status


@app.errorhandler(ValidationError)
def validation_error(e):
    return error(str(e), 400)


def json_object() -> dict:
    """The JSON request body as a dict; no body is an empty dict."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def login_required(view):
    """Gate a view on an existing session."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get("email"):
            return error("Not signed in", 401)
        return view(*args, **kwargs)

    return wrapped


# =============================================================================
# Serialization
# =============================================================================


def vehicle_json(vehicle: Vehicle, today: date) -> dict:
    """Stored fields plus derived status and compliance."""
    data = vehicle_to_dict(vehicle)
    for doc_data, doc in zip(data["documents"], vehicle.documents):
        doc_data["status"] = doc.status_as_of(today).value
    data["compliance"] = vehicle.compliance_percent()
    data["worst"] = vehicle.worst_status(today).value
    return data


def driver_json(registry: FleetRegistry, driver) -> dict:
    data = driver_to_dict(driver)
    data["licenseStatus"] = driver.license_status(registry.today).value
    data["vehicleIds"] = [v.id for v in registry.assigned_vehicles(driver.email)]
    return data


def document_patch(payload: dict) -> dict:
    """Translate a camelCase JSON body into a document patch."""
    patch = {}
    for key, field in (("issueDate", "issue_date"), ("expiryDate", "expiry_date")):
        if key in payload:
            value = payload[key] or None
            if value is not None and parse_date(value) is None:
                raise ValidationError(f"Invalid date for {key}: {value}")
            patch[field] = value
    if "file" in payload:
        file = payload["file"]
        if file is not None:
            url = file.get("url") if isinstance(file, dict) else None
            if not isinstance(url, str) or not url.strip():
                raise ValidationError("file must be null or an object with a url")
            if not isinstance(file.get("name"), (str, type(None))):
                raise ValidationError("file name must be text")
        patch["file"] = file
    return patch


# =============================================================================
# Session
# =============================================================================


@app.route("/register", methods=["POST"])
def register():
    """Free plans sign in at once; paid plans go through checkout first."""
    data = json_object()
    plan = data.get("package") or data.get("plan") or FREE_PLAN
    store = get_store()
    try:
        account = register_account(
            store,
            data.get("name", ""),
            data.get("email", ""),
            data.get("password", ""),
            plan,
            data.get("phone"),
            data.get("company"),
        )
    except DuplicateEmailError as e:
        return error(str(e), 409)
    except ValidationError as e:
        return error(str(e), 400)

    if account["active"]:
        session["email"] = account["email"]
        return jsonify({"ok": True, "redirect": url_for("dashboard")}), 201

    return_url = url_for("register_success", email=account["email"], _external=True)
    try:
        checkout_url = app.config["CHECKOUT"](account, return_url)
    except CheckoutError as e:
        return error(f"Checkout failed: {e}", 502)
    return jsonify({"ok": True, "redirect": checkout_url}), 201


@app.route("/register/success")
def register_success():
    """
    Checkout redirect-back: activate the account and start a session.

    The session_id is confirmed with the payment provider and must belong
    to a paid checkout for the same email.
    """
    email = request.args.get("email", "").strip().lower()
    session_id = request.args.get("session_id")
    if not session_id:
        return error("Missing checkout session", 400)
    try:
        paid_email = app.config["CHECKOUT_CONFIRM"](session_id)
    except CheckoutError as e:
        app.logger.error("Checkout confirmation failed: %s", e)
        return error(f"Checkout confirmation failed: {e}", 502)
    if paid_email is None or paid_email.strip().lower() != email:
        app.logger.warning("Rejected checkout session %s for %s", session_id, email)
        return error("Checkout session not confirmed", 401)
    account = activate_account(get_store(), email)
    if account is None:
        return error("Unknown account", 404)
    session["email"] = account["email"]
    return redirect(url_for("dashboard"))


@app.route("/login", methods=["POST"])
def login():
    data = json_object()
    account = authenticate(get_store(), data.get("email", ""), data.get("password", ""))
    if account is None:
        return error("Invalid email or password", 401)
    session["email"] = account["email"]
    return jsonify({"ok": True})


@app.route("/logout", methods=["POST"])
def logout():
    session.pop("email", None)
    return jsonify({"ok": True})


# =============================================================================
# Dashboard
# =============================================================================


@app.route("/api/dashboard")
@login_required
def dashboard():
    registry = get_registry()
    summary = dashboard_summary(registry.vehicles, registry.tasks, registry.today)
    return jsonify(
        {
            "vehicles": summary.vehicle_count,
            "openTasks": summary.open_tasks,
            "completedTasks": summary.completed_tasks,
            "counts": {s.value: summary.counts[s] for s in Status},
            "total": summary.document_count,
            "avgCompliance": summary.fleet_compliance,
            "overdue": [
                {
                    "vehicleId": o.vehicle_id,
                    "plate": o.plate,
                    "name": o.name,
                    "type": o.document.type.value,
                    "expiryDate": o.document.expiry_date,
                }
                for o in summary.overdue
            ],
            "health": [
                {
                    "id": h.vehicle_id,
                    "plate": h.plate,
                    "name": h.name,
                    "percent": h.percent,
                    "worst": h.worst.value,
                }
                for h in summary.health
            ],
            "upcoming": [
                {"month": label, "count": count}
                for label, count in zip(summary.upcoming_labels, summary.upcoming)
            ],
        }
    )


# =============================================================================
# Vehicles and documents
# =============================================================================


@app.route("/api/vehicles", methods=["GET"])
@login_required
def list_vehicles():
    registry = get_registry()
    vehicles = registry.search_vehicles(request.args.get("q", ""))
    return jsonify([vehicle_json(v, registry.today) for v in vehicles])


@app.route("/api/vehicles", methods=["POST"])
@login_required
def add_vehicle():
    data = json_object()
    registry = get_registry()
    try:
        vehicle = registry.add_vehicle(
            data.get("plate", ""),
            name=data.get("name"),
            vin=data.get("vin"),
            make=data.get("make"),
            model=data.get("model"),
            province=data.get("province"),
        )
    except ValidationError as e:
        return error(str(e))
    return jsonify(vehicle_json(vehicle, registry.today)), 201


@app.route("/api/vehicles/import", methods=["POST"])
@login_required
def import_vehicles():
    """Import vehicles from CSV text in the request body."""
    rows = parse_vehicle_csv(request.get_data(as_text=True))
    if not rows:
        return error("No importable rows found (a plate column is required).")
    registry = get_registry()
    added = registry.add_vehicles_bulk(rows)
    return jsonify([vehicle_json(v, registry.today) for v in added]), 201


@app.route("/api/vehicles/<vehicle_id>")
@login_required
def vehicle_detail(vehicle_id: str):
    registry = get_registry()
    vehicle = registry.get_vehicle(vehicle_id)
    if vehicle is None:
        return error(f"Vehicle '{vehicle_id}' not found", 404)
    return jsonify(vehicle_json(vehicle, registry.today))


def _document_response(registry: FleetRegistry, vehicle_id: str, task):
    vehicle = registry.get_vehicle(vehicle_id)
    return jsonify(
        {
            "vehicle": vehicle_json(vehicle, registry.today) if vehicle else None,
            "task": task_to_dict(task) if task else None,
        }
    )


@app.route("/api/vehicles/<vehicle_id>/documents/<doc_id>", methods=["PATCH"])
@login_required
def patch_document(vehicle_id: str, doc_id: str):
    """Patch a document; stale ids are a no-op and return vehicle null."""
    try:
        patch = document_patch(json_object())
    except ValidationError as e:
        return error(str(e))
    registry = get_registry()
    task = registry.set_document(vehicle_id, doc_id, patch)
    return _document_response(registry, vehicle_id, task)


@app.route("/api/vehicles/<vehicle_id>/documents/by-type/<doc_type>", methods=["PUT"])
@login_required
def put_document_by_type(vehicle_id: str, doc_type: str):
    """Replace all editable fields of the slot holding doc_type."""
    try:
        resolved = DocType(doc_type)
    except ValueError:
        return error(f"Unknown document type '{doc_type}'")
    payload = json_object()
    payload = {
        "issueDate": payload.get("issueDate"),
        "expiryDate": payload.get("expiryDate"),
        "file": payload.get("file"),
    }
    try:
        patch = document_patch(payload)
    except ValidationError as e:
        return error(str(e))
    registry = get_registry()
    task = registry.upsert_document_by_type(vehicle_id, resolved, patch)
    return _document_response(registry, vehicle_id, task)


@app.route("/api/vehicles/<vehicle_id>/report")
@login_required
def download_report(vehicle_id: str):
    registry = get_registry()
    vehicle = registry.get_vehicle(vehicle_id)
    if vehicle is None:
        return error(f"Vehicle '{vehicle_id}' not found", 404)
    try:
        report = build_audit_report(
            vehicle, local_fetcher(app.config["FILES_DIR"]), registry.today
        )
        data = report_bytes(report)
    except (ReportError, OSError) as e:
        app.logger.error("Failed to build audit report for %s: %s", vehicle.plate, e)
        return error("There was a problem generating the report.", 500)
    return send_file(
        io.BytesIO(data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=report.filename,
    )


# =============================================================================
# Tasks
# =============================================================================


@app.route("/api/tasks")
@login_required
def list_tasks():
    registry = get_registry()

    def row(task):
        data = task_to_dict(task)
        data["plate"] = registry.task_plate(task)
        return data

    return jsonify(
        {
            "open": [row(t) for t in registry.open_tasks],
            "completed": [row(t) for t in registry.completed_tasks],
        }
    )


@app.route("/api/tasks/<task_id>/complete", methods=["POST"])
@login_required
def complete_task(task_id: str):
    data = json_object()
    task = get_registry().toggle_task_completed(task_id, bool(data.get("done", True)))
    if task is None:
        return error(f"Task '{task_id}' not found", 404)
    return jsonify(task_to_dict(task))


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id: str):
    if not get_registry().delete_task(task_id):
        return error(f"Task '{task_id}' not found", 404)
    return jsonify({"ok": True})


# =============================================================================
# Drivers and assignments
# =============================================================================


@app.route("/api/drivers", methods=["GET"])
@login_required
def list_drivers():
    registry = get_registry()
    drivers = registry.search_drivers(request.args.get("q", ""))
    return jsonify([driver_json(registry, d) for d in drivers])


@app.route("/api/drivers", methods=["POST"])
@login_required
def add_driver():
    data = json_object()
    registry = get_registry()
    try:
        driver = registry.add_driver(
            data.get("name", ""),
            data.get("email", ""),
            employee_number=data.get("employeeNumber"),
            license_number=data.get("licenseNumber"),
            license_class=data.get("licenseClass"),
            license_expiry=data.get("licenseExpiry"),
        )
    except ValidationError as e:
        return error(str(e))
    return jsonify(driver_json(registry, driver)), 201


@app.route("/api/drivers/<driver_id>", methods=["PATCH"])
@login_required
def update_driver(driver_id: str):
    data = json_object()
    fields = {
        field: data[key]
        for key, field in (
            ("name", "name"),
            ("email", "email"),
            ("employeeNumber", "employee_number"),
            ("licenseNumber", "license_number"),
            ("licenseClass", "license_class"),
            ("licenseExpiry", "license_expiry"),
        )
        if key in data
    }
    registry = get_registry()
    try:
        driver = registry.update_driver(driver_id, **fields)
    except ValidationError as e:
        return error(str(e))
    if driver is None:
        return error(f"Driver '{driver_id}' not found", 404)
    return jsonify(driver_json(registry, driver))


@app.route("/api/drivers/<driver_id>", methods=["DELETE"])
@login_required
def remove_driver(driver_id: str):
    if not get_registry().remove_driver(driver_id):
        return error(f"Driver '{driver_id}' not found", 404)
    return jsonify({"ok": True})


@app.route("/api/assignments", methods=["POST", "DELETE"])
@login_required
def assignments():
    data = json_object()
    email, vehicle_id = data.get("email"), data.get("vehicleId")
    if not (isinstance(email, str) and email.strip() and isinstance(vehicle_id, str) and vehicle_id):
        return error("email and vehicleId are required")
    email = email.strip()
    registry = get_registry()
    if request.method == "POST":
        registry.assign(email, vehicle_id)
    else:
        registry.unassign(email, vehicle_id)
    return jsonify({"email": email.lower(), "vehicleIds": sorted(registry.assignments.assigned_vehicles(email))})


@app.route("/api/driver/<email>/vehicles")
@login_required
def driver_vehicles(email: str):
    """Driver portal: assigned vehicles that still exist."""
    registry = get_registry()
    return jsonify([vehicle_json(v, registry.today) for v in registry.assigned_vehicles(email)])


if __name__ == "__main__":
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    app.run(debug=True, host="0.0.0.0", port=5001)
