"""Driver-to-vehicle assignment directory."""

from typing import Dict, Iterable, List, Optional, Set


def _key(email: str) -> str:
    return email.strip().lower()


class AssignmentDirectory:
    """
    Maps a lowercased driver email to a set of vehicle ids.

    No referential integrity is enforced: ids for vehicles or drivers that
    do not exist are stored as given. Readers filter against the registry.
    """

    def __init__(self, mapping: Optional[Dict[str, Iterable[str]]] = None):
        self._map: Dict[str, List[str]] = {}
        for email, ids in (mapping or {}).items():
            for vehicle_id in ids:
                self.assign(email, vehicle_id)

    def assign(self, email: str, vehicle_id: str) -> None:
        ids = self._map.setdefault(_key(email), [])
        if vehicle_id not in ids:
            ids.append(vehicle_id)

    def unassign(self, email: str, vehicle_id: str) -> None:
        ids = self._map.get(_key(email))
        if ids and vehicle_id in ids:
            ids.remove(vehicle_id)

    def assigned_vehicles(self, email: str) -> Set[str]:
        return set(self._map.get(_key(email), []))

    def drivers_for(self, vehicle_id: str) -> List[str]:
        """Emails with vehicle_id assigned."""
        return sorted(email for email, ids in self._map.items() if vehicle_id in ids)

    def to_dict(self) -> Dict[str, List[str]]:
        return {email: list(ids) for email, ids in self._map.items()}
