"""Driver class for people who operate fleet vehicles."""

from datetime import date
from typing import Optional

from .calculations import classify_license
from .status import Status


class Driver:
    """A driver identity; email is the case-insensitive natural key."""

    def __init__(
        self,
        driver_id: str,
        name: str,
        email: str,
        employee_number: Optional[str] = None,
        license_number: Optional[str] = None,
        license_class: Optional[str] = None,
        license_expiry: Optional[str] = None,
    ):
        self.id = driver_id
        self.name = name
        self.email = email
        self.employee_number = employee_number
        self.license_number = license_number
        self.license_class = license_class  # e.g. G, AZ, DZ
        self.license_expiry = license_expiry

    @property
    def email_key(self) -> str:
        return self.email.strip().lower()

    def license_status(self, today: Optional[date] = None) -> Status:
        return classify_license(self.license_expiry, today)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, email, employee and license fields."""
        query = query.strip().lower()
        if not query:
            return True
        fields = (
            self.name,
            self.email,
            self.employee_number,
            self.license_number,
            self.license_class,
        )
        return any(query in (f or "").lower() for f in fields)
