"""Player knowledge projection: what the player plausibly knows, read off the graph."""

import re
from typing import Optional

from chronicle_kernel.graph.store import GraphStore
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import Predicate
from chronicle_kernel.models.record import WorldRecord
from chronicle_kernel.models.telemetry import (
    DirectionHint,
    KnowledgeProjection,
    KnownItem,
    KnownLocation,
    KnownNpc,
)
from chronicle_kernel.telemetry.projection import compute_bearing


def mentioned_in(term: str, text: str) -> bool:
    """Whole-word, case-insensitive mention of ``term``; hyphens count as part of a word."""
    term = term.strip()
    if not term:
        return False
    return re.search(rf"(?<![\w-]){re.escape(term)}(?![\w-])", text, re.IGNORECASE) is not None


def project_knowledge(
    record: WorldRecord,
    store: GraphStore,
    config: Optional[KernelConfig] = None,
) -> KnowledgeProjection:
    """
    Visited locations are the current one plus any whose id or name the ledger
    mentions. Locations inside the perception radius are known but unvisited.
    """
    config = config or KernelConfig()
    player_id = record.player.id
    located = store.get_located_in(player_id)
    current_id = located.object if located is not None else record.player.location
    turn = record.meta.turn

    origin = store.get_position(player_id) or record.player.pos
    ledger_text = "\n".join(record.ledger)

    known_locations = []
    directions = []
    for location_id, location in record.locations.items():
        visited = (
            location_id == current_id
            or mentioned_in(location.name, ledger_text)
            or mentioned_in(location_id, ledger_text)
        )
        landmark = location.coords or store.get_position(location_id)
        distance = origin.distance_to(landmark) if landmark is not None else None

        nearby = (
            location_id != current_id
            and distance is not None
            and distance < config.perception_radius_meters
        )
        if visited or nearby:
            known_locations.append(KnownLocation(
                id=location_id,
                name=location.name,
                visited=visited,
                last_visited_turn=turn if visited else None,
            ))

        if location_id != current_id and distance is not None and 0.1 < distance < config.direction_radius_meters:
            directions.append(DirectionHint(
                direction=compute_bearing(landmark.x - origin.x, landmark.y - origin.y) or "here",
                location_id=location_id,
                location_name=location.name,
                distance=int(round(distance)),
            ))

    known_npcs = [
        KnownNpc(id=npc_id, name=npc.name, last_seen_location_id=npc.location, last_seen_turn=turn)
        for npc_id, npc in record.npcs.items()
        if npc.location == current_id or mentioned_in(npc.name, ledger_text)
    ]

    known_items = [
        KnownItem(id=item.id, name=item.name, in_inventory=True)
        for item in record.player.inventory
    ]
    for relation in store.get_relations_by_subject(current_id, Predicate.CONTAINS.value, active_only=True):
        entity = store.get_entity(relation.object)
        if entity is None:
            continue
        known_items.append(KnownItem(
            id=entity.id,
            name=str(entity.properties.get("name") or entity.id),
            last_seen_location_id=current_id,
        ))

    return KnowledgeProjection(
        player_id=player_id,
        current_location_id=current_id,
        known_locations=known_locations,
        known_npcs=known_npcs,
        known_items=known_items,
        nearby_directions=directions,
    )
