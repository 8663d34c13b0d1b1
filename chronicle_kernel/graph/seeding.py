"""Seed a GraphStore from a World Record, then lay out unplaced locations."""

from collections import deque
from typing import Dict, Optional, Tuple

from chronicle_kernel.graph.store import GraphStore
from chronicle_kernel.models.graph import Entity, EntityType, Position, Predicate
from chronicle_kernel.models.record import WorldRecord

# North is +y
DIRECTION_VECTORS: Dict[str, Tuple[int, int]] = {
    "north": (0, 1),
    "south": (0, -1),
    "east": (1, 0),
    "west": (-1, 0),
}


def _pos_props(position: Optional[Position]) -> dict:
    return {"pos": position.model_dump()} if position is not None else {}


def seed_graph_from_record(
    store: GraphStore,
    record: WorldRecord,
    layout_step_meters: float = 100.0,
) -> GraphStore:
    """Populate ``store`` with the record's player, locations, items and NPCs."""
    store.tick = record.meta.turn
    player = record.player

    store.add_entity(Entity(
        id=player.id,
        type=EntityType.ACTOR.value,
        properties={"name": "Player", **_pos_props(player.pos)},
        tags={"player"},
    ))

    for location_id, location in record.locations.items():
        store.add_entity(Entity(
            id=location_id,
            type=EntityType.LOCATION.value,
            properties={
                "name": location.name,
                "description": location.description,
                **_pos_props(location.coords),
            },
        ))
        for item in location.items:
            if store.get_entity(item.id) is None:
                store.add_entity(Entity(id=item.id, type=EntityType.ITEM.value, properties={"name": item.name}))
            store.create_relation(location_id, Predicate.CONTAINS.value, item.id)

    for item in player.inventory:
        if store.get_entity(item.id) is None:
            store.add_entity(Entity(id=item.id, type=EntityType.ITEM.value, properties={"name": item.name}))
        store.create_relation(player.id, Predicate.CONTAINS.value, item.id)

    for npc_id, npc in record.npcs.items():
        if store.get_entity(npc_id) is not None:
            continue
        store.add_entity(Entity(
            id=npc_id,
            type=EntityType.ACTOR.value,
            properties={"name": npc.name, "role": npc.role},
            tags={"npc"},
        ))
        if npc.location in record.locations:
            store.create_relation(npc_id, Predicate.LOCATED_IN.value, npc.location)

    if player.location in record.locations:
        store.create_relation(player.id, Predicate.LOCATED_IN.value, player.location)

    auto_layout_missing_positions(store, start=player.location, step=layout_step_meters)
    return store


def auto_layout_missing_positions(
    store: GraphStore,
    start: Optional[str] = None,
    step: float = 100.0,
) -> Dict[str, Position]:
    """
    Breadth-first placement of locations lacking a position, following
    directional ``exit_to`` relations outward from ``start``. Locations that
    no directional relation reaches are placed at the origin. Returns the
    positions that were assigned.
    """
    location_ids = [e.id for e in store.query_entities(EntityType.LOCATION.value)]
    if not location_ids:
        return {}
    if start is None or store.get_entity(start) is None:
        start = location_ids[0]

    placed: Dict[str, Position] = {start: store.get_position(start) or Position(x=0, y=0)}
    queue = deque([start])

    while queue:
        origin_id = queue.popleft()
        origin = placed[origin_id]
        for exit_ in store.get_exits_from(origin_id):
            target = exit_["to"]
            if target in placed:
                continue
            existing = store.get_position(target)
            if existing is not None:
                placed[target] = existing
                queue.append(target)
                continue
            vector = DIRECTION_VECTORS.get(exit_["direction"].lower())
            if vector is None:
                continue
            placed[target] = Position(x=origin.x + vector[0] * step, y=origin.y + vector[1] * step)
            queue.append(target)

    assigned = {}
    for location_id in location_ids:
        if store.get_position(location_id) is not None:
            continue
        position = placed.get(location_id, Position(x=0, y=0))
        store.set_position(location_id, position)
        assigned[location_id] = position
    return assigned
