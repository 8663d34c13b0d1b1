"""
Entity edits expressed as patch batches.

The entity graph is rebuilt from the World Record, so an edit made on the graph
alone is lost at the next rebuild and never reaches the turn log. Each planner
here checks an entity-level edit against the record and returns the patches
(and ledger note) that carry it out through an ordinary turn.

Holders of items are the player and locations. NPCs are actors with a
location but no inventory.
"""

from typing import List, NamedTuple, Optional

from chronicle_kernel.errors import (
    ContainmentError,
    DuplicateEntityError,
    MissingEntityError,
    SchemaViolationError,
)
from chronicle_kernel.graph.store import make_entity_id
from chronicle_kernel.ledger.arbiter import make_pointer
from chronicle_kernel.models.graph import EntityType
from chronicle_kernel.models.record import ItemRef, Patch, PatchOp, WorldRecord


class EditPlan(NamedTuple):
    entity_id: str
    patches: List[Patch]
    note: str


class ItemSlot(NamedTuple):
    holder_id: str
    pointer: str            # Pointer to the holder's item list
    index: int
    item: ItemRef


def entity_label(record: WorldRecord, entity_id: str) -> str:
    if entity_id == record.player.id:
        return "Player"
    if entity_id in record.locations:
        return record.locations[entity_id].name or entity_id
    if entity_id in record.npcs:
        return record.npcs[entity_id].name or entity_id
    slot = find_item(record, entity_id)
    return slot.item.name if slot is not None else entity_id


def item_list_pointer(record: WorldRecord, holder_id: str) -> str:
    if holder_id == record.player.id:
        return "/player/inventory"
    if holder_id in record.locations:
        return make_pointer("locations", holder_id, "items")
    raise MissingEntityError(f"No item holder {holder_id}")


def _holdings(record: WorldRecord, holder_id: str) -> List[ItemRef]:
    if holder_id == record.player.id:
        return record.player.inventory
    return record.locations[holder_id].items


def find_item(record: WorldRecord, item_id: str) -> Optional[ItemSlot]:
    holders = [record.player.id] + list(record.locations)
    for holder_id in holders:
        for index, item in enumerate(_holdings(record, holder_id)):
            if item.id == item_id:
                return ItemSlot(holder_id, item_list_pointer(record, holder_id), index, item)
    return None


def entity_exists(record: WorldRecord, entity_id: str) -> bool:
    return (
        entity_id == record.player.id
        or entity_id in record.locations
        or entity_id in record.npcs
        or find_item(record, entity_id) is not None
    )


def _with_coords(properties: dict) -> dict:
    # Graph entities carry ``pos``; locations store their anchor as ``coords``
    properties = dict(properties)
    if "pos" in properties:
        properties.setdefault("coords", properties.pop("pos"))
    return properties


def _require_location(record: WorldRecord, location_id: str) -> None:
    if location_id not in record.locations:
        raise MissingEntityError(f"Location {location_id} not found")


def plan_create_entity(
    record: WorldRecord,
    entity_type: str,
    properties: dict,
    entity_id: Optional[str] = None,
) -> EditPlan:
    """
    Locations become ``/locations/<id>``, actors become ``/npcs/<id>`` and items
    are appended to a holder's item list. An item names its holder with a
    ``location`` property (a location id or the player id) and otherwise
    appears at the player's current location.
    """
    properties = dict(properties)
    entity_id = entity_id or make_entity_id(entity_type, properties.get("name"))
    if entity_exists(record, entity_id):
        raise DuplicateEntityError(f"Entity {entity_id} already exists")
    name = properties.get("name") or entity_id

    if entity_type == EntityType.LOCATION.value:
        value = {**_with_coords(properties), "id": entity_id, "name": name}
        patch = Patch(op=PatchOp.SET, path=make_pointer("locations", entity_id), value=value)
    elif entity_type == EntityType.ACTOR.value:
        if properties.get("location"):
            _require_location(record, properties["location"])
        value = {**properties, "id": entity_id, "name": name}
        patch = Patch(op=PatchOp.SET, path=make_pointer("npcs", entity_id), value=value)
    elif entity_type == EntityType.ITEM.value:
        holder_id = properties.pop("location", None) or record.player.location
        extra = sorted(set(properties) - {"name"})
        if extra:
            raise SchemaViolationError(f"Items carry only a name; unsupported properties: {', '.join(extra)}")
        value = ItemRef(id=entity_id, name=name).model_dump()
        patch = Patch(op=PatchOp.SET, path=item_list_pointer(record, holder_id) + "/-", value=value)
    else:
        raise SchemaViolationError(f"Entities of type {entity_type} have no place in the world record")

    note = f"Created {entity_type} {name}"
    return EditPlan(entity_id, [patch.model_copy(update={"note": note})], note)


def plan_update_entity(record: WorldRecord, entity_id: str, properties: dict) -> EditPlan:
    """Shallow merge of ``properties`` into the entity's record entry."""
    if entity_id in record.locations:
        patch = Patch(op=PatchOp.MERGE, path=make_pointer("locations", entity_id), value=_with_coords(properties))
    elif entity_id in record.npcs:
        patch = Patch(op=PatchOp.MERGE, path=make_pointer("npcs", entity_id), value=dict(properties))
    elif entity_id == record.player.id:
        patch = Patch(op=PatchOp.MERGE, path="/player", value=dict(properties))
    else:
        slot = find_item(record, entity_id)
        if slot is None:
            raise MissingEntityError(f"Entity {entity_id} not found")
        extra = sorted(set(properties) - {"name"})
        if extra:
            raise SchemaViolationError(f"Items carry only a name; unsupported properties: {', '.join(extra)}")
        patch = Patch(op=PatchOp.MERGE, path=f"{slot.pointer}/{slot.index}", value=dict(properties))

    note = f"Updated {entity_label(record, entity_id)}"
    return EditPlan(entity_id, [patch.model_copy(update={"note": note})], note)


def plan_move_entity(record: WorldRecord, entity_id: str, to_location_id: str) -> EditPlan:
    """
    The player moves to the destination's anchor (when it has one), an NPC
    changes its location and an item changes holder.
    """
    _require_location(record, to_location_id)
    destination = record.locations[to_location_id]
    target = destination.name or to_location_id

    if entity_id == record.player.id:
        origin = record.player.location
        note = f"Moved {entity_label(record, entity_id)} from {entity_label(record, origin)} to {target}"
        patches = [Patch(op=PatchOp.SET, path="/player/location", value=to_location_id, note=note)]
        if destination.coords is not None:
            patches.insert(0, Patch(
                op=PatchOp.SET,
                path="/player/pos",
                value=destination.coords.model_dump(),
                note=f"Player heads for {target}",
            ))
        return EditPlan(entity_id, patches, note)

    if entity_id in record.npcs:
        origin = record.npcs[entity_id].location
        origin_label = entity_label(record, origin) if origin else "nowhere"
        note = f"Moved {entity_label(record, entity_id)} from {origin_label} to {target}"
        patch = Patch(op=PatchOp.SET, path=make_pointer("npcs", entity_id, "location"), value=to_location_id, note=note)
        return EditPlan(entity_id, [patch], note)

    slot = find_item(record, entity_id)
    if slot is None:
        raise MissingEntityError(f"Entity {entity_id} not found")
    return plan_transfer_item(record, entity_id, slot.holder_id, to_location_id)


def plan_transfer_item(record: WorldRecord, item_id: str, from_entity_id: str, to_entity_id: str) -> EditPlan:
    """Remove the item from one holder's list and append it to another's, in one turn."""
    if not entity_exists(record, item_id):
        raise MissingEntityError(f"Entity {item_id} not found")
    source_pointer = item_list_pointer(record, from_entity_id)
    target_pointer = item_list_pointer(record, to_entity_id)

    held = _holdings(record, from_entity_id)
    item = next((i for i in held if i.id == item_id), None)
    if item is None:
        raise ContainmentError(f"Entity {from_entity_id} does not contain item {item_id}")

    source_label = entity_label(record, from_entity_id)
    note = f"Transferred {item.name} from {source_label} to {entity_label(record, to_entity_id)}"
    remaining = [i.model_dump() for i in held if i.id != item_id]
    patches = [
        Patch(op=PatchOp.SET, path=source_pointer, value=remaining, note=f"{item.name} leaves {source_label}"),
        Patch(op=PatchOp.SET, path=target_pointer + "/-", value=item.model_dump(), note=note),
    ]
    return EditPlan(item_id, patches, note)
