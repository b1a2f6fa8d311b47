"""Range-segmented numeric id allocation backed by one counter document per entity name."""

from pymongo import ReturnDocument

from app.core.exceptions import InvalidArgumentError
from app.core.logging import get_logger
from app.models.counter import Counter

log = get_logger(__name__)

# First id issued for a name is offset + 1
ENTITY_RANGES: dict[str, int] = {
    "userId": 100,
    "productId": 1000,
    "courseId": 2000,
    "categoryId": 50,
    "orderId": 10000,
    "subCategoryId": 300,
}

ALIASES = {
    "user": "userId",
    "product": "productId",
    "course": "courseId",
    "category": "categoryId",
    "order": "orderId",
    "subCategory": "subCategoryId",
}


def canonical_name(entity_name: str) -> str:
    return ALIASES.get(entity_name, entity_name)


def offset_for(entity_name: str) -> int:
    return ENTITY_RANGES.get(canonical_name(entity_name), 0)


async def _increment(name: str) -> int:
    doc = await Counter.get_motor_collection().find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return doc["seq"]


async def get_next_id(entity_name: str) -> int:
    """
    Atomically increment and return the sequence for entity_name.
    Unknown names use offset 0. A counter still at or below its offset is raised
    to the offset with $max and incremented again; values handed out below the
    floor are discarded, so concurrent first callers still get distinct ids.
    """
    name = canonical_name(entity_name)
    offset = ENTITY_RANGES.get(name, 0)
    seq = await _increment(name)
    if seq <= offset:
        await Counter.get_motor_collection().update_one({"_id": name}, {"$max": {"seq": offset}})
        seq = await _increment(name)
        log.info("counter_floor_applied", name=name, offset=offset)
    log.debug("id_allocated", name=name, id=seq)
    return seq


async def get_next_id_with_validation(entity_name: str) -> int:
    name = canonical_name(entity_name)
    if name not in ENTITY_RANGES:
        allowed = ", ".join(ENTITY_RANGES)
        raise InvalidArgumentError(
            f"Invalid model name: {entity_name}. Valid models: {allowed}",
            details={"allowed": list(ENTITY_RANGES)},
        )
    return await get_next_id(name)


async def initialize_counter_ranges() -> None:
    """Create missing counters at their offset and raise any that sit below it."""
    coll = Counter.get_motor_collection()
    for name, offset in ENTITY_RANGES.items():
        result = await coll.update_one({"_id": name}, {"$max": {"seq": offset}}, upsert=True)
        if result.upserted_id is not None:
            log.info("counter_initialized", name=name, seq=offset)
        elif result.modified_count:
            log.info("counter_raised", name=name, seq=offset)


async def get_current_max_id(entity_name: str) -> int:
    counter = await Counter.get(canonical_name(entity_name))
    return counter.seq if counter else 0


async def set_counter_value(entity_name: str, value: int) -> int:
    """Migration helper: overwrite the sequence. Lowering it can re-issue ids."""
    if value < 0:
        raise InvalidArgumentError("Counter value must be non-negative")
    name = canonical_name(entity_name)
    doc = await Counter.get_motor_collection().find_one_and_update(
        {"_id": name},
        {"$set": {"seq": value}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    log.warning("counter_set", name=name, seq=value)
    return doc["seq"]
