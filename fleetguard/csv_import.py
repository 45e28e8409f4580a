"""CSV import of vehicle rows."""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PLATE_HEADERS = ("plate", "licence", "license", "license plate", "licence plate")


@dataclass
class VehicleRow:
    """One importable vehicle."""

    plate: str
    make: Optional[str] = None
    model: Optional[str] = None
    vin: Optional[str] = None
    province: Optional[str] = None
    name: Optional[str] = None  # unit / friendly name


def _first(row: Dict[str, str], *headers: str) -> Optional[str]:
    """First non-empty value among headers, in order."""
    for header in headers:
        value = (row.get(header) or "").strip()
        if value:
            return value
    return None


def parse_vehicle_csv(text: str) -> List[VehicleRow]:
    """
    Parse CSV text with a header row into vehicle rows.

    Headers are matched case-insensitively. Quoted fields may contain
    commas and doubled quotes. Rows without a plate are skipped; text
    that cannot be parsed yields no rows.
    """
    text = text.strip()
    if not text:
        return []
    try:
        reader = csv.reader(io.StringIO(text))
        lines = list(reader)
    except csv.Error as e:
        logger.warning("Could not parse CSV: %s", e)
        return []
    if not lines:
        return []

    headers = [h.strip().lower() for h in lines[0]]
    rows = []
    for line_number, values in enumerate(lines[1:], start=2):
        record: Dict[str, str] = {}
        for header, value in zip(headers, values):
            record.setdefault(header, value)
        plate = _first(record, *PLATE_HEADERS)
        if not plate:
            if any(v.strip() for v in values):
                logger.warning("Skipping CSV line %d: no plate", line_number)
            continue
        rows.append(
            VehicleRow(
                plate=plate,
                make=_first(record, "make"),
                model=_first(record, "model"),
                vin=_first(record, "vin"),
                province=_first(record, "province"),
                name=_first(record, "name", "unit"),
            )
        )
    return rows
