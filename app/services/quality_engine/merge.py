"""
Identity-keyed merge of a validated step payload into the stored draft.

Merging is idempotent: applying the same payload twice yields the same stored
value as applying it once.
"""

from typing import Callable, Iterable, List, Optional, TypeVar
from app.schemas.onboarding import (
    AmenitiesPayload,
    BusinessFeaturesPayload,
    ImagesPayload,
    RoomRecord,
    RoomsPayload,
    StepPayload,
)
from app.services.quality_engine.amenity_rules import dedupe_selection

T = TypeVar("T")


def merge_by_key(existing: Iterable[T], incoming: Iterable[T], key: Callable[[T], Optional[str]]) -> List[T]:
    """
    Union two lists by identity key.

    Existing entries keep their position; an incoming entry with a known key
    replaces the stored content in place. Entries without a key are appended
    unless an equal entry is already present.
    """
    merged: List[T] = []
    positions = {}
    for item in list(existing) + list(incoming):
        item_key = key(item)
        if item_key is None:
            if item not in merged:
                merged.append(item)
            continue
        if item_key in positions:
            merged[positions[item_key]] = item
        else:
            positions[item_key] = len(merged)
            merged.append(item)
    return merged


def _merge_room(room: RoomRecord) -> RoomRecord:
    return room.model_copy(update={
        "images": merge_by_key([], room.images, lambda image: image.id),
        "amenities": dedupe_selection(room.amenities),
        "amenity_overrides": merge_by_key([], room.amenity_overrides, lambda override: None),
    })


def merge_step_payload(existing: Optional[StepPayload], incoming: StepPayload) -> StepPayload:
    """
    Merge `incoming` into the stored payload for the same step.

    Args:
        existing: Currently stored payload for the step, if any
        incoming: Validated payload for the same step

    Returns:
        The new stored payload. Never mutates either argument.
    """
    if isinstance(incoming, AmenitiesPayload):
        # the selection is a set: a new submission replaces the old one
        return incoming.model_copy(update={"selected_amenities": dedupe_selection(incoming.selected_amenities)})

    if isinstance(incoming, ImagesPayload):
        stored = existing.images if isinstance(existing, ImagesPayload) else []
        return incoming.model_copy(update={"images": merge_by_key(stored, incoming.images, lambda image: image.id)})

    if isinstance(incoming, RoomsPayload):
        stored = existing.rooms if isinstance(existing, RoomsPayload) else []
        rooms = merge_by_key(stored, incoming.rooms, lambda room: room.id)
        return incoming.model_copy(update={"rooms": [_merge_room(room) for room in rooms]})

    if isinstance(incoming, BusinessFeaturesPayload):
        if not isinstance(existing, BusinessFeaturesPayload):
            existing = BusinessFeaturesPayload()
        return incoming.model_copy(update={
            "meeting_rooms": merge_by_key(existing.meeting_rooms, incoming.meeting_rooms, lambda room: room.id),
            "work_spaces": merge_by_key(existing.work_spaces, incoming.work_spaces, lambda space: space.id),
            "services": merge_by_key(existing.services, incoming.services, lambda service: service.name),
        })

    # property-info holds scalars only
    return incoming.model_copy()
