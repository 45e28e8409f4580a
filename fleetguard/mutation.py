"""Document mutation engine: the only way a binder slot changes."""

import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple

from .transition import Transition
from .vehicle import Vehicle

logger = logging.getLogger(__name__)


def find_vehicle(vehicles: Iterable[Vehicle], vehicle_id: str) -> Optional[Vehicle]:
    for vehicle in vehicles:
        if vehicle.id == vehicle_id:
            return vehicle
    return None


def apply_patch(
    vehicles: Iterable[Vehicle],
    vehicle_id: str,
    doc_id: str,
    patch: Dict[str, Any],
    today: Optional[date] = None,
) -> Tuple[Optional[Vehicle], Optional[Transition]]:
    """
    Merge a patch onto one document and report its status transition.

    Logic:
    - Unknown vehicle or document: nothing to update, returns (None, None)
    - Merge issue_date/expiry_date/file; fields not in the patch are kept
    - id, type and status in the patch are ignored
    - Status before and after is derived from the expiry date as of today
    """
    vehicle = find_vehicle(vehicles, vehicle_id)
    doc = vehicle.get_document(doc_id) if vehicle else None
    if vehicle is None or doc is None:
        logger.debug("Ignoring patch for stale target %s/%s", vehicle_id, doc_id)
        return None, None

    old_status = doc.status_as_of(today)
    doc.merge(patch)
    new_status = doc.status_as_of(today)

    transition = Transition(
        vehicle_id=vehicle.id,
        doc_id=doc.id,
        doc_type=doc.type,
        old_status=old_status,
        new_status=new_status,
        expiry_date=doc.expiry_date,
    )
    return vehicle, transition
