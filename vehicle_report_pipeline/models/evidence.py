"""
Evidence data models for the Vehicle Report Pipeline

Defines assessable items (photos, OBD2 screenshots, title documents), the
category priority table used to order them, and the size-bounded chunks
they are grouped into.
"""

from enum import Enum
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


class ItemCategory(Enum):
    """Evidence category enumeration."""
    EXTERIOR = "exterior"
    INTERIOR = "interior"
    DASHBOARD = "dashboard"
    PAINT = "paint"
    RUST = "rust"
    ENGINE = "engine"
    UNDERCARRIAGE = "undercarriage"
    OBD = "obd"
    TITLE = "title"
    RECORDS = "records"


class ItemType(Enum):
    """Source of an assessable item."""
    PHOTO = "photo"
    OBD2_IMAGE = "obd2_image"
    TITLE_IMAGE = "title_image"


# Chunking order: related evidence lands together, paperwork trails
CATEGORY_PRIORITY: List[str] = [category.value for category in ItemCategory]


def category_rank(category: Optional[str]) -> int:
    """Position of a category in CATEGORY_PRIORITY; unknown categories rank last."""
    try:
        return CATEGORY_PRIORITY.index(category)
    except ValueError:
        return len(CATEGORY_PRIORITY)


def parse_size(value: Any) -> int:
    """Parse a stored byte size; missing or unparsable sizes count as zero."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        try:
            return max(int(float(value)), 0)
        except (TypeError, ValueError):
            return 0


@dataclass
class AssessableItem:
    """One unit of evidence sent to the analysis engine."""

    item_id: str
    size_bytes: int
    category: str
    path: str
    item_type: ItemType = ItemType.PHOTO

    # Only meaningful for OBD2 screenshots
    code: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_obd(self) -> bool:
        return self.category == ItemCategory.OBD.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert item to the dictionary stored in a job payload."""
        data = {
            "id": self.item_id,
            "path": self.path,
            "category": self.category,
            "storage": self.size_bytes,
            "type": self.item_type.value,
        }
        if self.code is not None:
            data["code"] = self.code
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssessableItem":
        """Create item from a job payload dictionary."""
        return cls(
            item_id=str(data.get("id", data.get("item_id", ""))),
            size_bytes=parse_size(data.get("storage", data.get("size_bytes"))),
            category=data.get("category") or "",
            path=data.get("path") or "",
            item_type=ItemType(data.get("type", data.get("item_type", ItemType.PHOTO.value))),
            code=data.get("code"),
            description=data.get("description")
        )


@dataclass
class Chunk:
    """A size-bounded, category-ordered group of items handled by one job."""

    items: List[AssessableItem] = field(default_factory=list)
    total_size: int = 0
    chunk_index: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def is_oversized(self, max_chunk_bytes: int) -> bool:
        """Check whether this chunk is a lone item that exceeds the budget."""
        return len(self.items) == 1 and self.total_size > max_chunk_bytes

    def to_payload(self) -> Dict[str, Any]:
        """Flatten the chunk into a job payload."""
        return {"images": [item.to_dict() for item in self.items]}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "images": [item.to_dict() for item in self.items],
            "total_size": self.total_size,
            "chunk_index": self.chunk_index
        }
