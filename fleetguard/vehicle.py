"""Vehicle class - the aggregate owning a five-slot compliance binder."""

from datetime import date
from typing import List, Optional

from .calculations import round_half_up
from .document import DOC_TYPES, DocType, Document
from .ids import new_id
from .status import Status, worst_status


def empty_binder() -> List[Document]:
    """One empty document per type, in binder order."""
    return [Document(new_id("doc"), doc_type) for doc_type in DOC_TYPES]


class Vehicle:
    """A fleet asset and its compliance binder."""

    def __init__(
        self,
        vehicle_id: str,
        name: str,
        plate: str,
        documents: Optional[List[Document]] = None,
        created_at: Optional[str] = None,
        vin: Optional[str] = None,
        make: Optional[str] = None,
        model: Optional[str] = None,
        province: Optional[str] = None,
    ):
        self.id = vehicle_id
        self.name = name
        self.plate = plate
        self.vin = vin
        self.make = make
        self.model = model
        self.province = province
        self.documents = documents if documents is not None else empty_binder()
        self.created_at = created_at or date.today().isoformat()

    @property
    def make_model(self) -> str:
        return " ".join(p for p in (self.make, self.model) if p)

    def get_document(self, doc_id: str) -> Optional[Document]:
        """Find a binder slot by document id."""
        for doc in self.documents:
            if doc.id == doc_id:
                return doc
        return None

    def get_document_by_type(self, doc_type: DocType) -> Optional[Document]:
        """Find the binder slot holding a document type."""
        doc_type = DocType(doc_type)
        for doc in self.documents:
            if doc.type == doc_type:
                return doc
        return None

    def compliance_percent(self) -> int:
        """Share of slots with an uploaded file, 0..100 in steps of 20."""
        with_files = sum(1 for d in self.documents if d.has_file)
        return round_half_up(100 * with_files / len(DOC_TYPES))

    def worst_status(self, today: Optional[date] = None) -> Status:
        """Most severe status across the binder."""
        return worst_status(d.status_as_of(today) for d in self.documents)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, plate, vin, make, model."""
        query = query.strip().lower()
        if not query:
            return True
        fields = (self.name, self.plate, self.vin, self.make, self.model)
        return any(query in (f or "").lower() for f in fields)
