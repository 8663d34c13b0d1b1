"""
Turn Engine — one session's authoritative record and the turn pipeline around it.

Pipeline per turn:
  telemetry -> constraints -> validation -> (reject, record untouched)
                                         -> speculate -> commit -> diff + session log

Behavioral Contract:
- The authoritative record changes only through ``commit``.
- Policy patches and system patches are applied as one ordered batch: one
  turn increment, one log entry.
- A rejected or erroring turn leaves the authoritative record byte-identical.
- Speculation runs on a copy; committing a stale speculation is refused.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional, Tuple

from chronicle_kernel.constraints.kernel import (
    build_turn_constraints,
    validate_patches_against_constraints,
)
from chronicle_kernel.engine.mutations import (
    plan_create_entity,
    plan_move_entity,
    plan_transfer_item,
    plan_update_entity,
)
from chronicle_kernel.errors import MissingEntityError, StaleSpeculationError
from chronicle_kernel.graph.context import GraphContext
from chronicle_kernel.graph.store import GraphStore
from chronicle_kernel.ledger.arbiter import DEFAULT_NOTE, PatchLike, apply_patches, coerce_patches
from chronicle_kernel.ledger.store import SessionStore, record_hash
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import DEFAULT_PREDICATES, Position, PredicateRegistry
from chronicle_kernel.models.record import Patch, PatchOp, WorldRecord
from chronicle_kernel.models.session import TurnResult
from chronicle_kernel.models.telemetry import (
    KnowledgeProjection,
    TravelEstimate,
    TurnConstraints,
    TurnTelemetry,
)
from chronicle_kernel.systems.reactive import SystemSpec, compute_system_patches, default_systems
from chronicle_kernel.systems.time import describe_duration
from chronicle_kernel.telemetry.diff import compute_turn_diff
from chronicle_kernel.telemetry.knowledge import project_knowledge
from chronicle_kernel.telemetry.projection import build_turn_telemetry
from chronicle_kernel.travel.calculator import Waypoint, calculate_travel_time, resolve_position
from chronicle_kernel.weather.engine import WeatherEngine
from chronicle_kernel.weather.metadata import EMPTY_METADATA_TABLE, MetadataTable

logger = logging.getLogger(__name__)


class Speculation(NamedTuple):
    """A candidate next record built on a copy of the authoritative one."""

    base_turn: int
    record: WorldRecord
    patches: List[Patch]                    # Policy patches followed by system patches
    system_patches: List[Patch]
    note: str


class TurnEngine:
    """
    Drives turns for a single session.
    Holds the authoritative record, its graph cache and (optionally) a session store.
    """

    def __init__(
        self,
        record: WorldRecord,
        config: Optional[KernelConfig] = None,
        session_store: Optional[SessionStore] = None,
        session_id: Optional[str] = None,
        metadata_table: MetadataTable = EMPTY_METADATA_TABLE,
        registry: PredicateRegistry = DEFAULT_PREDICATES,
        systems: Optional[List[SystemSpec]] = None,
        weather_engine: Optional[WeatherEngine] = None,
    ):
        self.config = config or KernelConfig()
        self.metadata_table = metadata_table
        self.weather_engine = weather_engine or WeatherEngine()
        self.systems = systems if systems is not None else default_systems(self.weather_engine)
        self.session_store = session_store
        self._record = record
        self._graph = GraphContext(registry=registry, layout_step_meters=self.config.layout_step_meters)

        self.session_id = session_id
        if session_store is not None and session_id is None:
            self.session_id = session_store.create_session(record)

    @classmethod
    def resume(cls, session_store: SessionStore, session_id: str, **kwargs) -> "TurnEngine":
        """Reopen a stored session from its latest snapshot."""
        record = session_store.load_snapshot(session_id)
        return cls(record, session_store=session_store, session_id=session_id, **kwargs)

    # --- Views ---

    @property
    def record(self) -> WorldRecord:
        return self._record

    @property
    def graph(self) -> GraphStore:
        return self._graph.refresh(self._record)

    def telemetry(self) -> TurnTelemetry:
        return build_turn_telemetry(
            self._record,
            store=self.graph,
            config=self.config,
            metadata_table=self.metadata_table,
            engine=self.weather_engine,
        )

    def constraints(self, telemetry: Optional[TurnTelemetry] = None) -> TurnConstraints:
        telemetry = telemetry or self.telemetry()
        return build_turn_constraints(self._record, telemetry, self.config, self.metadata_table)

    def knowledge(self) -> KnowledgeProjection:
        return project_knowledge(self._record, self.graph, self.config)

    def validate(self, patches: Iterable[PatchLike], check_distance: bool = True) -> Tuple[TurnConstraints, List[str]]:
        batch = coerce_patches(patches)
        constraints = self.constraints()
        violations = validate_patches_against_constraints(
            batch, constraints, self._record, self.config, check_distance=check_distance
        )
        return constraints, violations

    # --- Shadow turn ---

    def _stamp(self, patches: List[Patch], by: Optional[str]) -> List[Patch]:
        next_turn = self._record.meta.turn + 1
        stamped = []
        for patch in patches:
            update = {}
            if patch.by is None and by is not None:
                update["by"] = by
            if patch.turn is None and (patch.by or by):
                update["turn"] = next_turn
            stamped.append(patch.model_copy(update=update) if update else patch)
        return stamped

    def speculate(self, patches: Iterable[PatchLike], note: str = DEFAULT_NOTE, by: Optional[str] = None) -> Speculation:
        """Build the candidate next record on a copy. The authoritative record is untouched."""
        policy = self._stamp(coerce_patches(patches), by)
        preview = apply_patches(self._record, policy, note)
        system_patches = compute_system_patches(preview, policy, self.config, self.systems)
        batch = policy + system_patches
        candidate = apply_patches(self._record, batch, note) if system_patches else preview
        return Speculation(
            base_turn=self._record.meta.turn,
            record=candidate,
            patches=batch,
            system_patches=system_patches,
            note=note,
        )

    def commit(self, speculation: Speculation) -> WorldRecord:
        if speculation.base_turn != self._record.meta.turn:
            raise StaleSpeculationError(
                f"Speculation built on turn {speculation.base_turn}, record is at turn {self._record.meta.turn}"
            )
        self._record = speculation.record
        return self._record

    # --- Turns ---

    def run_turn(
        self,
        patches: Iterable[PatchLike],
        note: str = DEFAULT_NOTE,
        by: Optional[str] = None,
        check_distance: bool = True,
    ) -> TurnResult:
        batch = coerce_patches(patches)
        before = self.telemetry()
        constraints = self.constraints(before)
        violations = validate_patches_against_constraints(
            batch, constraints, self._record, self.config, check_distance=check_distance
        )

        if violations:
            return self._reject(note, by, violations, constraints)

        speculation = self.speculate(batch, note=note, by=by)
        record = self.commit(speculation)
        entry_id = self._log(note, by, speculation.patches, accepted=True)
        return TurnResult(
            accepted=True,
            turn=record.meta.turn,
            applied_patches=speculation.patches,
            constraints=constraints,
            diff=compute_turn_diff(before, self.telemetry()),
            record=record,
            log_entry_id=entry_id,
        )

    def _reject(
        self,
        note: str,
        by: Optional[str],
        violations: List[str],
        constraints: Optional[TurnConstraints] = None,
    ) -> TurnResult:
        logger.info("Turn rejected: %s", "; ".join(violations))
        entry_id = self._log(note, by, [], accepted=False, violations=violations)
        return TurnResult(
            accepted=False,
            turn=self._record.meta.turn,
            violations=violations,
            constraints=constraints,
            record=self._record,
            log_entry_id=entry_id,
        )

    def _log(
        self,
        note: str,
        by: Optional[str],
        patches: List[Patch],
        accepted: bool,
        violations: Optional[List[str]] = None,
    ) -> Optional[str]:
        if self.session_store is None:
            return None
        entry = self.session_store.new_entry(
            self.session_id,
            turn=self._record.meta.turn,
            note=note,
            by=by,
            patches=patches,
            accepted=accepted,
            violations=violations or [],
            record_hash=record_hash(self._record) if accepted else None,
        )
        self.session_store.append_turn(entry)
        if accepted:
            self.session_store.save_snapshot(self.session_id, self._record)
        return entry.id

    # --- Actions ---

    def advance_time(self, minutes: int, reason: str = "", by: Optional[str] = None) -> TurnResult:
        time_state = self._record.systems.time
        current = time_state.elapsed_minutes if time_state is not None else 0
        note = f"Time advances {describe_duration(minutes)}"
        if reason:
            note = f"{note}: {reason}"
        patch = Patch(
            op=PatchOp.SET,
            path="/systems/time/elapsed_minutes",
            value=max(0, current + minutes),
            note=note,
        )
        return self.run_turn([patch], note=note, by=by)

    def move_to_position(
        self,
        to: Optional[Position] = None,
        delta: Optional[Position] = None,
        note: Optional[str] = None,
        by: Optional[str] = None,
    ) -> TurnResult:
        """Move the player to an absolute position or by a delta; containment follows the nearest landmark."""
        if (to is None) == (delta is None):
            raise ValueError("Provide exactly one of 'to' or 'delta'")
        origin = self._record.player.pos
        if to is None:
            to = Position(
                x=origin.x + delta.x,
                y=origin.y + delta.y,
                z=(origin.z or 0.0) + delta.z if delta.z is not None else origin.z,
            )

        patches = [Patch(op=PatchOp.SET, path="/player/pos", value=to.model_dump(), note=note or "Player moves")]
        nearest = self.graph.nearest_location(to)
        if nearest is not None and nearest != self._record.player.location:
            name = self._record.locations[nearest].name if nearest in self._record.locations else nearest
            patches.append(Patch(
                op=PatchOp.SET,
                path="/player/location",
                value=nearest,
                note=f"Player arrives near {name}",
            ))
        return self.run_turn(patches, note=note or "Player moves", by=by)

    def estimate_travel(
        self,
        destination: Waypoint,
        origin: Optional[Waypoint] = None,
        weather_multiplier: Optional[float] = None,
    ) -> TravelEstimate:
        if weather_multiplier is None:
            weather_multiplier = self.constraints().weather_multiplier
        return calculate_travel_time(
            self._record,
            origin if origin is not None else self._record.player.pos,
            destination,
            weather_multiplier=weather_multiplier,
            config=self.config,
        )

    def travel_to_location(self, location_id: str, by: Optional[str] = None) -> TurnResult:
        """
        Multi-turn-scale travel: jump to a landmark and advance the clock by the
        estimated travel time. Blocked destinations and locations without
        coordinates are refused; the per-turn distance budget does not apply.
        """
        location = self._record.locations.get(location_id)
        if location is None:
            raise MissingEntityError(f"Location {location_id} not found")
        if location.coords is None:
            return self._reject(
                f"Travel to {location.name}",
                by,
                [f'Location "{location_id}" has no coordinates to travel to.'],
                self.constraints(),
            )

        estimate = self.estimate_travel(location_id)
        minutes = max(1, int(round(estimate.adjusted_minutes)))
        destination = resolve_position(self._record, location_id)
        time_state = self._record.systems.time
        note = f"Travelled to {location.name} ({describe_duration(minutes)})"

        patches = [
            Patch(op=PatchOp.SET, path="/player/pos", value=destination.model_dump(), note=note),
            Patch(op=PatchOp.SET, path="/player/location", value=location_id, note=f"Player arrives at {location.name}"),
        ]
        if time_state is not None:
            patches.append(Patch(
                op=PatchOp.SET,
                path="/systems/time/elapsed_minutes",
                value=time_state.elapsed_minutes + minutes,
                note=f"Time advances {describe_duration(minutes)}",
            ))
        return self.run_turn(patches, note=note, by=by, check_distance=False)

    # --- Entity edits ---

    def create_entity(
        self,
        entity_type: str,
        properties: Optional[dict] = None,
        entity_id: Optional[str] = None,
        by: Optional[str] = None,
    ) -> Tuple[str, TurnResult]:
        """Add a location, NPC or item to the record in its own turn. Returns the new id and the turn."""
        plan = plan_create_entity(self._record, entity_type, properties or {}, entity_id)
        return plan.entity_id, self.run_turn(plan.patches, note=plan.note, by=by)

    def update_entity(self, entity_id: str, properties: dict, by: Optional[str] = None) -> TurnResult:
        plan = plan_update_entity(self._record, entity_id, properties)
        return self.run_turn(plan.patches, note=plan.note, by=by)

    def move_entity(self, entity_id: str, to_location_id: str, by: Optional[str] = None) -> TurnResult:
        plan = plan_move_entity(self._record, entity_id, to_location_id)
        return self.run_turn(plan.patches, note=plan.note, by=by)

    def transfer_item(
        self,
        item_id: str,
        from_entity_id: str,
        to_entity_id: str,
        by: Optional[str] = None,
    ) -> TurnResult:
        plan = plan_transfer_item(self._record, item_id, from_entity_id, to_entity_id)
        return self.run_turn(plan.patches, note=plan.note, by=by)
