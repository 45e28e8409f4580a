#!/usr/bin/env python3
"""Validate a fleet store directory against the record schema."""
import json
import sys
from pathlib import Path

from jsonschema import ValidationError

from fleetguard.loader import (
    ACCOUNTS_KEY,
    ASSIGNMENTS_KEY,
    DRIVERS_KEY,
    TASKS_KEY,
    VEHICLES_KEY,
    validate_record,
)

# Collection key -> (record kind, is a list of records)
COLLECTIONS = {
    VEHICLES_KEY: ("vehicle", True),
    TASKS_KEY: ("task", True),
    DRIVERS_KEY: ("driver", True),
    ACCOUNTS_KEY: ("account", True),
    ASSIGNMENTS_KEY: ("assignments", False),
}


def validate_collection_file(filepath: Path, record: str, is_list: bool) -> list[str]:
    """Validate a single collection file. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = json.load(f)
        if not is_list:
            validate_record(record, data)
        elif not isinstance(data, list):
            errors.append(f"Expected a list, got {type(data).__name__}")
        else:
            for index, item in enumerate(data):
                try:
                    validate_record(record, item)
                except ValidationError as e:
                    errors.append(f"Schema validation error in [{index}]: {e.message}")
                    if e.path:
                        errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except json.JSONDecodeError as e:
        errors.append(f"JSON parse error: {e}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except Exception as e:
        errors.append(f"Error: {e}")
    return errors


def main(argv=None):
    """Validate every known collection in a store directory."""
    args = sys.argv[1:] if argv is None else argv
    data_dir = Path(args[0]) if args else Path("data")

    if not data_dir.exists():
        print(f"Error: store directory not found: {data_dir}")
        return 1

    found = False
    all_valid = True
    for key, (record, is_list) in COLLECTIONS.items():
        filepath = data_dir / f"{key}.json"
        if not filepath.exists():
            continue
        found = True
        errors = validate_collection_file(filepath, record, is_list)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    if not found:
        print(f"Warning: No collection files found in {data_dir}")
        return 0

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
