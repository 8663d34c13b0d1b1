"""
Graph Context — the entity graph as an explicit, invalidatable cache of the record.

Behavioral Contract:
- The World Record is authoritative; the graph is derived from it.
- ``refresh(record)`` rebuilds the graph whenever the record's structural
  signature (player id, locations and their items, inventory, npcs) changes.
- Otherwise it only re-syncs the player's position, containment edge and tick.
- One GraphContext per session. Nothing is shared between sessions.
"""

import json
import logging
from typing import Optional

from chronicle_kernel.graph.seeding import seed_graph_from_record
from chronicle_kernel.graph.store import GraphStore
from chronicle_kernel.models.graph import DEFAULT_PREDICATES, PredicateRegistry
from chronicle_kernel.models.record import WorldRecord

logger = logging.getLogger(__name__)


def structural_signature(record: WorldRecord) -> str:
    locations = {
        location_id: {
            "items": sorted([item.id, item.name] for item in location.items),
            "name": location.name,
            "description": location.description,
            "coords": location.coords.model_dump() if location.coords is not None else None,
        }
        for location_id, location in sorted(record.locations.items())
    }
    npcs = {npc_id: [npc.name, npc.role, npc.location] for npc_id, npc in sorted(record.npcs.items())}
    return json.dumps(
        {
            "player": record.player.id,
            "locations": locations,
            "inventory": sorted([item.id, item.name] for item in record.player.inventory),
            "npcs": npcs,
        },
        sort_keys=True,
    )


class GraphContext:
    """Owns one session's GraphStore and keeps it consistent with the record."""

    def __init__(self, registry: PredicateRegistry = DEFAULT_PREDICATES, layout_step_meters: float = 100.0):
        self.registry = registry
        self.layout_step_meters = layout_step_meters
        self._store: Optional[GraphStore] = None
        self._signature: Optional[str] = None

    @property
    def store(self) -> Optional[GraphStore]:
        return self._store

    def invalidate(self) -> None:
        self._store = None
        self._signature = None

    def refresh(self, record: WorldRecord) -> GraphStore:
        signature = structural_signature(record)
        if self._store is None or signature != self._signature:
            logger.info(
                "Rebuilding graph from record (turn %s, %d locations)",
                record.meta.turn, len(record.locations),
            )
            store = GraphStore(registry=self.registry)
            seed_graph_from_record(store, record, layout_step_meters=self.layout_step_meters)
            self._store = store
            self._signature = signature
            return store

        store = self._store
        store.tick = record.meta.turn
        player = record.player
        if store.get_entity(player.id) is not None:
            store.set_position(player.id, player.pos)
            located = store.get_located_in(player.id)
            if player.location in record.locations and (located is None or located.object != player.location):
                store.move_entity(player.id, player.location)
        return store
