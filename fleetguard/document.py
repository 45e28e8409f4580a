"""Document class for one slot of a vehicle's compliance binder."""

from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from .calculations import classify, parse_date
from .errors import ValidationError
from .status import Status


class DocType(Enum):
    """The fixed document types every vehicle carries, in binder order."""

    REGISTRATION = "Registration"
    INSURANCE = "Insurance"
    CVOR = "CVOR"
    INSPECTION = "Inspection"
    PM_SERVICE = "PM Service"


DOC_TYPES = list(DocType)

PATCH_FIELDS = ("issue_date", "expiry_date", "file")


class DocFile:
    """Reference to an uploaded file."""

    def __init__(self, url: str, name: str):
        self.url = url
        self.name = name

    @property
    def is_pdf(self) -> bool:
        return self.url.lower().endswith(".pdf") or self.name.lower().endswith(".pdf")

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocFile):
            return NotImplemented
        return (self.url, self.name) == (other.url, other.name)

    def __repr__(self) -> str:
        return f"DocFile({self.url!r}, {self.name!r})"


class Document:
    """
    A compliance record in a fixed binder slot.

    Identifier and type are fixed at creation. Dates and file are only
    changed through merge(), which the mutation engine calls. Status is
    never stored: it is computed from the expiry date on every read.
    """

    def __init__(
        self,
        doc_id: str,
        doc_type: DocType,
        issue_date: Optional[str] = None,
        expiry_date: Optional[str] = None,
        file: Optional[DocFile] = None,
    ):
        self._id = doc_id
        self._type = DocType(doc_type)
        self._issue_date = issue_date
        self._expiry_date = expiry_date
        self._file = file

    @property
    def id(self) -> str:
        return self._id

    @property
    def type(self) -> DocType:
        return self._type

    @property
    def issue_date(self) -> Optional[str]:
        return self._issue_date

    @property
    def expiry_date(self) -> Optional[str]:
        return self._expiry_date

    @property
    def file(self) -> Optional[DocFile]:
        return self._file

    @property
    def has_file(self) -> bool:
        return self._file is not None

    @property
    def status(self) -> Status:
        """Status as of today."""
        return self.status_as_of(None)

    def status_as_of(self, today: Optional[date]) -> Status:
        return classify(self._expiry_date, today)

    def merge(self, patch: Dict[str, Any]) -> None:
        """
        Overwrite the fields present in patch.

        Keys outside issue_date/expiry_date/file (id, type, status, ...)
        are ignored. A key present with None clears the field. A malformed
        file raises ValidationError before any field changes.
        """
        if "file" in patch:
            file = _doc_file(patch["file"])
        if "issue_date" in patch:
            self._issue_date = _iso_or_none(patch["issue_date"])
        if "expiry_date" in patch:
            self._expiry_date = _iso_or_none(patch["expiry_date"])
        if "file" in patch:
            self._file = file


def _doc_file(value: Any) -> Optional[DocFile]:
    """Coerce a file reference given as DocFile, {url, name} mapping or None."""
    if value is None or isinstance(value, DocFile):
        return value
    if not isinstance(value, dict):
        raise ValidationError("File must be an object with a url.")
    url, name = value.get("url"), value.get("name")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("File url must be non-empty text.")
    if name is not None and not isinstance(name, str):
        raise ValidationError("File name must be text.")
    return DocFile(url, name or url)


def _iso_or_none(value: Any) -> Optional[str]:
    """Normalize a date value to ISO text; unparseable text is kept as given."""
    if value is None or value == "":
        return None
    parsed = parse_date(value)
    if parsed is not None:
        return parsed.isoformat()
    return str(value)
