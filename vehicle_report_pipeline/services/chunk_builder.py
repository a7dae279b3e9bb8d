"""
Chunk building for the Vehicle Report Pipeline

Turns an inspection's raw evidence rows into assessable items and groups
them into size-bounded chunks ordered by category priority.
"""

from typing import Any, Dict, Iterable, List

from ..core.exceptions import ValidationError
from ..models.evidence import (
    AssessableItem,
    Chunk,
    ItemCategory,
    ItemType,
    category_rank,
    parse_size
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def collect_assessable_items(
    photos: Iterable[Dict[str, Any]] = (),
    obd2_codes: Iterable[Dict[str, Any]] = (),
    title_images: Iterable[Dict[str, Any]] = ()
) -> List[AssessableItem]:
    """
    Flatten evidence rows into assessable items.

    Photos keep their own category. OBD2 rows count only when they carry a
    screenshot and title rows only when they carry a path. Converted assets
    take precedence over originals.

    Args:
        photos: Photo rows (id, path, converted_path, category, storage)
        obd2_codes: OBD2 rows (id, code, description, screenshot_path, converted_path, storage)
        title_images: Title document rows (id, path, converted_path, storage)

    Returns:
        Items in source order: photos, OBD2 screenshots, title images
    """
    items: List[AssessableItem] = []

    for photo in photos:
        items.append(AssessableItem(
            item_id=str(photo.get("id")),
            size_bytes=parse_size(photo.get("storage")),
            category=photo.get("category") or "",
            path=photo.get("converted_path") or photo.get("path") or "",
            item_type=ItemType.PHOTO
        ))

    for obd2 in obd2_codes:
        if not obd2.get("screenshot_path"):
            continue
        items.append(AssessableItem(
            item_id=str(obd2.get("id")),
            size_bytes=parse_size(obd2.get("storage")),
            category=ItemCategory.OBD.value,
            path=obd2.get("converted_path") or obd2.get("screenshot_path"),
            item_type=ItemType.OBD2_IMAGE,
            code=obd2.get("code"),
            description=obd2.get("description")
        ))

    for title_image in title_images:
        if not title_image.get("path"):
            continue
        items.append(AssessableItem(
            item_id=str(title_image.get("id")),
            size_bytes=parse_size(title_image.get("storage")),
            category=ItemCategory.TITLE.value,
            path=title_image.get("converted_path") or title_image.get("path"),
            item_type=ItemType.TITLE_IMAGE
        ))

    return items


def sort_by_category_priority(items: Iterable[AssessableItem]) -> List[AssessableItem]:
    """Stable sort by category priority; unknown categories trail."""
    return sorted(items, key=lambda item: category_rank(item.category))


def build_chunks(items: Iterable[AssessableItem], max_chunk_bytes: int) -> List[Chunk]:
    """
    Group items into size-bounded chunks.

    Items are sorted by category priority, then accumulated greedily. A new
    chunk starts when the next item would push the running total past
    ``max_chunk_bytes`` and the running chunk already holds something, so
    an item larger than the budget ends up alone in its own chunk.

    Args:
        items: Items to partition
        max_chunk_bytes: Byte budget per chunk, must be positive

    Returns:
        Chunks with running total_size and zero-based chunk_index; an empty
        list for empty input

    Raises:
        ValidationError: If max_chunk_bytes is not positive
    """
    if max_chunk_bytes <= 0:
        raise ValidationError("max_chunk_bytes", "must be greater than zero", max_chunk_bytes)

    chunks: List[Chunk] = []
    current: List[AssessableItem] = []
    current_size = 0

    for item in sort_by_category_priority(items):
        if current and current_size + item.size_bytes > max_chunk_bytes:
            chunks.append(Chunk(items=current, total_size=current_size, chunk_index=len(chunks)))
            current = []
            current_size = 0
        current.append(item)
        current_size += item.size_bytes

    if current:
        chunks.append(Chunk(items=current, total_size=current_size, chunk_index=len(chunks)))

    oversized = sum(1 for chunk in chunks if chunk.is_oversized(max_chunk_bytes))
    logger.debug("Built chunks", extra={
        "chunk_count": len(chunks),
        "oversized_chunks": oversized,
        "max_chunk_bytes": max_chunk_bytes
    })
    return chunks


def plan_chunks(evidence: Dict[str, List[Dict[str, Any]]], max_chunk_bytes: int) -> List[Chunk]:
    """Collect items from an evidence mapping and chunk them."""
    items = collect_assessable_items(
        evidence.get("photos", []),
        evidence.get("obd2_codes", []),
        evidence.get("title_images", [])
    )
    return build_chunks(items, max_chunk_bytes)
