"""
Chronicle Kernel API — FastAPI endpoints.

Exposes the kernel to the narrative/policy layer and front ends:
- Session creation and world state
- Turn telemetry, constraints and player knowledge
- Graph queries, and entity edits run as logged turns
- Patch application and dry-run validation
- Time advancement and travel
- Ledger tail and turn-log verification
"""

from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from chronicle_kernel.constraints.kernel import format_turn_constraints
from chronicle_kernel.engine.turn import TurnEngine
from chronicle_kernel.errors import ChronicleError
from chronicle_kernel.ledger.store import SessionStore, record_hash
from chronicle_kernel.logging_config import setup_logging
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import Patch, WorldRecord
from chronicle_kernel.models.session import TurnResult
from chronicle_kernel.weather.metadata import (
    EMPTY_METADATA_TABLE,
    ISLE_OF_MARROW_WEATHER_METADATA,
    MetadataTable,
)
from chronicle_kernel.worlds.isle_of_marrow import create_isle_of_marrow_world, create_simple_world

WorldFactory = Callable[[], WorldRecord]

WORLD_FACTORIES: Dict[str, Tuple[WorldFactory, MetadataTable]] = {
    "isle-of-marrow": (create_isle_of_marrow_world, ISLE_OF_MARROW_WEATHER_METADATA),
    "simple": (create_simple_world, EMPTY_METADATA_TABLE),
}


# --- Request/Response Models ---

class SessionCreateRequest(BaseModel):
    world: str = "isle-of-marrow"
    session_id: Optional[str] = None


class PatchBatchRequest(BaseModel):
    patches: List[Patch]
    note: str = "State updated"
    by: Optional[str] = None


class EntityCreateRequest(BaseModel):
    type: str
    properties: dict = {}
    id: Optional[str] = None
    by: Optional[str] = None


class EntityUpdateRequest(BaseModel):
    properties: dict
    by: Optional[str] = None


class MoveEntityRequest(BaseModel):
    to_location_id: str
    by: Optional[str] = None


class TransferItemRequest(BaseModel):
    from_entity_id: str
    to_entity_id: str
    by: Optional[str] = None


class AdvanceTimeRequest(BaseModel):
    minutes: int
    reason: str = ""
    by: Optional[str] = None


class MoveRequest(BaseModel):
    to: Optional[Position] = None
    delta: Optional[Position] = None
    note: Optional[str] = None
    by: Optional[str] = None


class TravelRequest(BaseModel):
    location_id: str
    by: Optional[str] = None


@contextmanager
def _kernel_errors():
    """Translate kernel errors into HTTP errors."""
    try:
        yield
    except ChronicleError as exc:
        raise HTTPException(exc.status_code, exc.message) from exc


# --- Application Factory ---

def create_app(
    session_store: Optional[SessionStore] = None,
    config: Optional[KernelConfig] = None,
    world_factories: Optional[Dict[str, Tuple[WorldFactory, MetadataTable]]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Chronicle Kernel API",
        description="Deterministic world-state kernel for interactive fiction",
        version="0.1.0",
    )

    store = session_store or SessionStore()
    kernel_config = config or KernelConfig.from_env()
    factories = world_factories or WORLD_FACTORIES

    # Store components on app state for access in endpoints
    app.state.session_store = store
    app.state.config = kernel_config
    app.state.engines = {}
    app.state.metadata_tables = {}

    def get_engine(session_id: str) -> TurnEngine:
        engine = app.state.engines.get(session_id)
        if engine is not None:
            return engine
        if not store.has_session(session_id):
            raise HTTPException(404, f"Session {session_id} not found")
        engine = TurnEngine.resume(
            store,
            session_id,
            config=kernel_config,
            metadata_table=app.state.metadata_tables.get(session_id, EMPTY_METADATA_TABLE),
        )
        app.state.engines[session_id] = engine
        return engine

    @app.get("/health")
    def health():
        return {"status": "ok", "schema_version": kernel_config.schema_version}

    # === SESSIONS ===

    @app.post("/sessions")
    def create_session(req: SessionCreateRequest):
        """Start a session from an authored world."""
        if req.world not in factories:
            raise HTTPException(404, f"Unknown world '{req.world}'")
        if req.session_id and store.has_session(req.session_id):
            raise HTTPException(409, f"Session {req.session_id} already exists")
        factory, metadata_table = factories[req.world]
        record = factory()
        with _kernel_errors():
            engine = TurnEngine(
                record,
                config=kernel_config,
                session_store=store,
                session_id=store.create_session(record, req.session_id) if req.session_id else None,
                metadata_table=metadata_table,
            )
        app.state.engines[engine.session_id] = engine
        app.state.metadata_tables[engine.session_id] = metadata_table
        return {
            "session_id": engine.session_id,
            "telemetry": engine.telemetry().model_dump(mode="json"),
        }

    @app.get("/sessions")
    def list_sessions():
        return store.list_sessions()

    # === WORLD STATE ===

    @app.get("/sessions/{session_id}/record")
    def get_record(session_id: str):
        return get_engine(session_id).record.model_dump(mode="json")

    @app.get("/sessions/{session_id}/telemetry")
    def get_telemetry(session_id: str):
        return get_engine(session_id).telemetry().model_dump(mode="json")

    @app.get("/sessions/{session_id}/constraints")
    def get_constraints(session_id: str):
        constraints = get_engine(session_id).constraints()
        return {
            **constraints.model_dump(mode="json"),
            "formatted": format_turn_constraints(constraints),
        }

    @app.get("/sessions/{session_id}/knowledge")
    def get_knowledge(session_id: str):
        return get_engine(session_id).knowledge().model_dump(mode="json")

    # === GRAPH ===

    @app.get("/sessions/{session_id}/entities")
    def query_entities(session_id: str, type: Optional[str] = None, tag: Optional[str] = None):
        graph = get_engine(session_id).graph
        return [e.model_dump(mode="json") for e in graph.query_entities(type, tag)]

    @app.get("/sessions/{session_id}/entities/{entity_id}")
    def get_entity(session_id: str, entity_id: str):
        entity = get_engine(session_id).graph.get_entity(entity_id)
        if entity is None:
            raise HTTPException(404, "Entity not found")
        return entity.model_dump(mode="json")

    def entity_turn(engine: TurnEngine, entity_id: str, result: TurnResult) -> dict:
        """Turn result plus the entity as the refreshed graph now sees it."""
        entity = engine.graph.get_entity(entity_id) if result.accepted else None
        return {
            **result.model_dump(mode="json"),
            "entity_id": entity_id,
            "entity": entity.model_dump(mode="json") if entity is not None else None,
        }

    @app.post("/sessions/{session_id}/entities")
    def create_entity(session_id: str, req: EntityCreateRequest):
        """Add a location, NPC or item to the record as one turn."""
        engine = get_engine(session_id)
        with _kernel_errors():
            entity_id, result = engine.create_entity(req.type, req.properties, entity_id=req.id, by=req.by)
        return entity_turn(engine, entity_id, result)

    @app.patch("/sessions/{session_id}/entities/{entity_id}")
    def update_entity(session_id: str, entity_id: str, req: EntityUpdateRequest):
        engine = get_engine(session_id)
        with _kernel_errors():
            result = engine.update_entity(entity_id, req.properties, by=req.by)
        return entity_turn(engine, entity_id, result)

    @app.get("/sessions/{session_id}/relations")
    def query_relations(
        session_id: str,
        subject: Optional[str] = None,
        object: Optional[str] = None,
        predicate: Optional[str] = None,
    ):
        graph = get_engine(session_id).graph
        if subject is not None:
            relations = graph.get_relations_by_subject(subject, predicate)
        elif object is not None:
            relations = graph.get_relations_by_object(object, predicate)
        elif predicate is not None:
            relations = graph.get_relations_by_predicate(predicate)
        else:
            relations = list(graph.relations.values())
        return [r.model_dump(mode="json") for r in relations]

    @app.post("/sessions/{session_id}/entities/{entity_id}/move")
    def move_entity(session_id: str, entity_id: str, req: MoveEntityRequest):
        engine = get_engine(session_id)
        with _kernel_errors():
            result = engine.move_entity(entity_id, req.to_location_id, by=req.by)
        return entity_turn(engine, entity_id, result)

    @app.post("/sessions/{session_id}/items/{item_id}/transfer")
    def transfer_item(session_id: str, item_id: str, req: TransferItemRequest):
        engine = get_engine(session_id)
        with _kernel_errors():
            result = engine.transfer_item(item_id, req.from_entity_id, req.to_entity_id, by=req.by)
        return entity_turn(engine, entity_id=item_id, result=result)

    @app.get("/sessions/{session_id}/distance")
    def get_distance(session_id: str, a: str, b: str):
        graph = get_engine(session_id).graph
        if graph.get_entity(a) is None or graph.get_entity(b) is None:
            raise HTTPException(404, "Entity not found")
        return {"a": a, "b": b, "distance": graph.distance(a, b)}

    # === PATCHES & TURNS ===

    @app.post("/sessions/{session_id}/patches")
    def apply_patch_batch(session_id: str, req: PatchBatchRequest):
        """Run one turn with the given patches."""
        engine = get_engine(session_id)
        with _kernel_errors():
            result = engine.run_turn(req.patches, note=req.note, by=req.by)
        return result.model_dump(mode="json")

    @app.post("/sessions/{session_id}/patches/validate")
    def validate_patch_batch(session_id: str, req: PatchBatchRequest):
        """Dry run: constraint violations only, nothing applied."""
        with _kernel_errors():
            constraints, violations = get_engine(session_id).validate(req.patches)
        return {
            "valid": not violations,
            "violations": violations,
            "constraints": constraints.model_dump(mode="json"),
        }

    @app.post("/sessions/{session_id}/time/advance")
    def advance_time(session_id: str, req: AdvanceTimeRequest):
        if req.minutes < 0:
            raise HTTPException(422, "minutes must be non-negative")
        with _kernel_errors():
            result = get_engine(session_id).advance_time(req.minutes, req.reason, by=req.by)
        return result.model_dump(mode="json")

    @app.post("/sessions/{session_id}/move")
    def move_player(session_id: str, req: MoveRequest):
        if (req.to is None) == (req.delta is None):
            raise HTTPException(422, "Provide exactly one of 'to' or 'delta'")
        with _kernel_errors():
            result = get_engine(session_id).move_to_position(
                to=req.to, delta=req.delta, note=req.note, by=req.by
            )
        return result.model_dump(mode="json")

    @app.get("/sessions/{session_id}/travel/{location_id}")
    def estimate_travel(session_id: str, location_id: str):
        engine = get_engine(session_id)
        if location_id not in engine.record.locations:
            raise HTTPException(404, "Location not found")
        return engine.estimate_travel(location_id).model_dump(mode="json")

    @app.post("/sessions/{session_id}/travel")
    def travel(session_id: str, req: TravelRequest):
        with _kernel_errors():
            result = get_engine(session_id).travel_to_location(req.location_id, by=req.by)
        return result.model_dump(mode="json")

    # === LEDGER ===

    @app.get("/sessions/{session_id}/ledger")
    def get_ledger(session_id: str, limit: int = 20):
        ledger = get_engine(session_id).record.ledger
        return ledger[-limit:] if limit > 0 else []

    @app.get("/sessions/{session_id}/turns")
    def get_turns(session_id: str):
        get_engine(session_id)
        return [e.model_dump(mode="json") for e in store.get_turn_log(session_id)]

    @app.get("/sessions/{session_id}/verify")
    def verify_session(session_id: str):
        engine = get_engine(session_id)
        with _kernel_errors():
            replayed = store.replay(session_id)
        return {
            "chain_valid": store.verify_chain_integrity(session_id),
            "replay_matches": record_hash(replayed) == record_hash(engine.record),
            "turns_logged": store.count(session_id),
        }

    return app


# Default application instance
setup_logging()
app = create_app()
