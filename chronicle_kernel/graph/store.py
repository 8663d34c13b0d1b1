"""
Entity/Relation Graph Store — typed nodes, typed directed edges, three indices.

Behavioral Contract:
- Every relation id sits in exactly three index buckets: its subject, its object
  and its predicate. Removing a relation removes it from all three.
- Relations with a registered predicate are validated on creation (subject and
  object types, required property types, named invariants). Violations raise
  SchemaViolationError; unknown ids raise MissingEntityError.
- Unregistered predicates are accepted but flagged.
- Entities persist until removed explicitly. There is no implicit cleanup.
"""

import json
import logging
import re
import uuid
from typing import Dict, List, Optional, Set

from chronicle_kernel.errors import (
    ContainmentError,
    DuplicateEntityError,
    MissingEntityError,
    SchemaViolationError,
)
from chronicle_kernel.models.graph import (
    DEFAULT_PREDICATES,
    UNIQUE_PER_SUBJECT,
    Entity,
    EntityType,
    Position,
    Predicate,
    PredicateRegistry,
    PropertyType,
    Relation,
)

logger = logging.getLogger(__name__)

_PROPERTY_CHECKS = {
    PropertyType.STRING: lambda v: isinstance(v, str),
    PropertyType.NUMBER: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    PropertyType.BOOLEAN: lambda v: isinstance(v, bool),
}


def make_entity_id(entity_type: str, suggested_name: Optional[str] = None) -> str:
    """``"{type}-{slug}"`` from a name, or a random suffix when no name is given."""
    if suggested_name:
        slug = re.sub(r"\s+", "-", suggested_name.lower())
        slug = re.sub(r"[^a-z0-9-]", "", slug)
        return f"{entity_type}-{slug}"
    return f"{entity_type}-{uuid.uuid4().hex[:10]}"


def make_relation_id(predicate: str, subject: str, obj: str, properties: Optional[dict] = None) -> str:
    props = json.dumps(properties or {}, sort_keys=True, separators=(",", ":"))
    return f"{predicate}:{subject}:{obj}:{props}"


class GraphStore:
    """
    In-memory entity/relation graph for one session.
    Seeded from (and invalidated by) the World Record; see GraphContext.
    """

    def __init__(self, registry: PredicateRegistry = DEFAULT_PREDICATES, tick: Optional[int] = None):
        self.registry = registry
        self.tick = tick                        # Current turn, for validity windows
        self._entities: Dict[str, Entity] = {}
        self._relations: Dict[str, Relation] = {}
        self._by_subject: Dict[str, List[str]] = {}
        self._by_object: Dict[str, List[str]] = {}
        self._by_predicate: Dict[str, List[str]] = {}
        self.flagged_predicates: Set[str] = set()

    # --- Entities ---

    @property
    def entities(self) -> Dict[str, Entity]:
        return dict(self._entities)

    @property
    def relations(self) -> Dict[str, Relation]:
        return dict(self._relations)

    def add_entity(self, entity: Entity) -> Entity:
        if entity.id in self._entities:
            raise DuplicateEntityError(f"Entity {entity.id} already exists")
        self._entities[entity.id] = entity
        return entity

    def create_entity(
        self,
        entity_type: str,
        properties: Optional[dict] = None,
        tags: Optional[Set[str]] = None,
        entity_id: Optional[str] = None,
    ) -> Entity:
        """Create an entity, deriving its id from ``properties["name"]`` when not given."""
        properties = dict(properties or {})
        entity_id = entity_id or make_entity_id(entity_type, properties.get("name"))
        return self.add_entity(Entity(
            id=entity_id,
            type=entity_type,
            properties=properties,
            tags=set(tags or ()),
        ))

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def require_entity(self, entity_id: str) -> Entity:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise MissingEntityError(f"Entity {entity_id} not found")
        return entity

    def update_entity(self, entity_id: str, properties: dict) -> Entity:
        """Shallow-merge ``properties`` into the entity's property map."""
        entity = self.require_entity(entity_id)
        entity.properties = {**entity.properties, **properties}
        return entity

    def update_entity_props(self, entity_id: str, properties: dict) -> Entity:
        return self.update_entity(entity_id, properties)

    def remove_entity(self, entity_id: str) -> bool:
        """Remove an entity together with every relation that references it."""
        if entity_id not in self._entities:
            return False
        attached = set(self._by_subject.get(entity_id, [])) | set(self._by_object.get(entity_id, []))
        for relation_id in attached:
            self.remove_relation(relation_id)
        del self._entities[entity_id]
        return True

    def query_entities(self, entity_type: Optional[str] = None, tag: Optional[str] = None) -> List[Entity]:
        return [
            e for e in self._entities.values()
            if (entity_type is None or e.type == entity_type)
            and (tag is None or tag in e.tags)
        ]

    # --- Relations ---

    def create_relation(
        self,
        subject: str,
        predicate: str,
        obj: str,
        properties: Optional[dict] = None,
        replace: bool = False,
        t0: Optional[int] = None,
        t1: Optional[int] = None,
        caused_by: Optional[str] = None,
    ) -> Relation:
        """
        Validate and add a relation. With ``replace=True`` an existing relation
        that a uniqueness invariant would conflict with is removed first.
        """
        properties = dict(properties or {})
        relation = Relation(
            id=make_relation_id(predicate, subject, obj, properties),
            predicate=predicate,
            subject=subject,
            object=obj,
            properties=properties,
            t0=t0,
            t1=t1,
            caused_by=caused_by,
        )
        return self.add_relation(relation, replace=replace)

    def add_relation(self, relation: Relation, replace: bool = False) -> Relation:
        existing = self._relations.get(relation.id)
        if existing is not None and not replace:
            raise SchemaViolationError(f"Relation {relation.id} already exists")

        conflicts = self._validate_relation(relation, replace)
        if existing is not None:
            self.remove_relation(existing.id)
        for conflict in conflicts:
            self.remove_relation(conflict.id)

        self._relations[relation.id] = relation
        self._by_subject.setdefault(relation.subject, []).append(relation.id)
        self._by_object.setdefault(relation.object, []).append(relation.id)
        self._by_predicate.setdefault(relation.predicate, []).append(relation.id)
        return relation

    def _validate_relation(self, relation: Relation, replace: bool) -> List[Relation]:
        """Raise on any violation; return relations a permitted replacement displaces."""
        subject = self._entities.get(relation.subject)
        if subject is None:
            raise MissingEntityError(f"Subject entity {relation.subject} not found")
        obj = self._entities.get(relation.object)
        if obj is None:
            raise MissingEntityError(f"Object entity {relation.object} not found")

        spec = self.registry.get(relation.predicate)
        if spec is None:
            if relation.predicate not in self.flagged_predicates:
                logger.warning("Unregistered predicate used: %s", relation.predicate)
            self.flagged_predicates.add(relation.predicate)
            return []

        if subject.type not in spec.subject_types:
            raise SchemaViolationError(
                f"Predicate {spec.predicate} requires subject type in "
                f"[{', '.join(spec.subject_types)}], got {subject.type}"
            )
        if obj.type not in spec.object_types:
            raise SchemaViolationError(
                f"Predicate {spec.predicate} requires object type in "
                f"[{', '.join(spec.object_types)}], got {obj.type}"
            )

        for key, expected in spec.required_properties.items():
            if key not in relation.properties:
                raise SchemaViolationError(f"Predicate {spec.predicate} requires property '{key}'")
            value = relation.properties[key]
            if not _PROPERTY_CHECKS[expected](value):
                raise SchemaViolationError(
                    f"Predicate {spec.predicate} property '{key}' must be "
                    f"{expected.value}, got {type(value).__name__}"
                )

        conflicts = []
        if UNIQUE_PER_SUBJECT in spec.invariants:
            conflicts = [
                r for r in self.get_relations_by_subject(relation.subject, spec.predicate, active_only=True)
                if r.id != relation.id
            ]
            if conflicts and not replace:
                raise SchemaViolationError(
                    f"Entity {relation.subject} already has {spec.predicate}: {conflicts[0].object}"
                )
        return conflicts

    def remove_relation(self, relation_id: str) -> bool:
        relation = self._relations.pop(relation_id, None)
        if relation is None:
            return False
        for index, key in (
            (self._by_subject, relation.subject),
            (self._by_object, relation.object),
            (self._by_predicate, relation.predicate),
        ):
            bucket = index.get(key, [])
            if relation_id in bucket:
                bucket.remove(relation_id)
            if not bucket:
                index.pop(key, None)
        return True

    def get_relation(self, relation_id: str) -> Optional[Relation]:
        return self._relations.get(relation_id)

    def _resolve(self, ids: List[str], predicate: Optional[str], active_only: bool) -> List[Relation]:
        relations = [self._relations[i] for i in ids]
        if predicate is not None:
            relations = [r for r in relations if r.predicate == predicate]
        if active_only:
            relations = [r for r in relations if r.is_active(self.tick)]
        return relations

    def get_relations_by_subject(
        self, entity_id: str, predicate: Optional[str] = None, active_only: bool = False
    ) -> List[Relation]:
        return self._resolve(self._by_subject.get(entity_id, []), predicate, active_only)

    def get_relations_by_object(
        self, entity_id: str, predicate: Optional[str] = None, active_only: bool = False
    ) -> List[Relation]:
        return self._resolve(self._by_object.get(entity_id, []), predicate, active_only)

    def get_relations_by_predicate(self, predicate: str, active_only: bool = False) -> List[Relation]:
        return self._resolve(self._by_predicate.get(predicate, []), None, active_only)

    def check_index_consistency(self) -> bool:
        """True when the three indices hold exactly the relation set, once each."""
        for index, attr in (
            (self._by_subject, "subject"),
            (self._by_object, "object"),
            (self._by_predicate, "predicate"),
        ):
            seen = [rid for bucket in index.values() for rid in bucket]
            if sorted(seen) != sorted(self._relations):
                return False
            for key, bucket in index.items():
                if any(getattr(self._relations[rid], attr) != key for rid in bucket):
                    return False
        return True

    # --- Spatial helpers ---

    def get_located_in(self, entity_id: str) -> Optional[Relation]:
        located = self.get_relations_by_subject(entity_id, Predicate.LOCATED_IN.value, active_only=True)
        return located[0] if located else None

    def get_exits_from(self, location_id: str) -> List[dict]:
        return [
            {"direction": str(r.properties.get("direction", "")), "to": r.object}
            for r in self.get_relations_by_subject(location_id, Predicate.EXIT_TO.value, active_only=True)
        ]

    def get_exits_with_costs(self, location_id: str) -> List[dict]:
        exits = []
        for exit_ in self.get_exits_from(location_id):
            cost = self.distance(location_id, exit_["to"])
            exits.append({**exit_, "cost": cost if cost is not None else 1.0})
        return exits

    def get_contents(self, container_id: str) -> List[Entity]:
        return [
            self._entities[r.object]
            for r in self.get_relations_by_subject(container_id, Predicate.CONTAINS.value, active_only=True)
            if r.object in self._entities
        ]

    def get_position(self, entity_id: str) -> Optional[Position]:
        entity = self._entities.get(entity_id)
        if entity is None:
            return None
        pos = entity.properties.get("pos")
        if isinstance(pos, Position):
            return pos
        if isinstance(pos, dict) and isinstance(pos.get("x"), (int, float)) and isinstance(pos.get("y"), (int, float)):
            z = pos.get("z")
            return Position(x=pos["x"], y=pos["y"], z=z if isinstance(z, (int, float)) else None)
        return None

    def set_position(self, entity_id: str, position: Position) -> None:
        self.update_entity(entity_id, {"pos": position.model_dump()})

    def distance(self, a: str, b: str) -> Optional[float]:
        pa, pb = self.get_position(a), self.get_position(b)
        if pa is None or pb is None:
            return None
        return pa.distance_to(pb)

    def nearest_location(self, position: Position) -> Optional[str]:
        best_id, best_distance = None, float("inf")
        for entity in self.query_entities(EntityType.LOCATION.value):
            landmark = self.get_position(entity.id)
            if landmark is None:
                continue
            d = position.distance_to(landmark)
            if d < best_distance:
                best_id, best_distance = entity.id, d
        return best_id

    # --- Mutations with narrative notes ---

    def move_entity(self, entity_id: str, to_location_id: str) -> str:
        """
        Relocate an entity's containment relation. Movement is coordinate-based,
        so no exit edge between the two locations is required.
        """
        entity = self.require_entity(entity_id)
        destination = self.require_entity(to_location_id)
        current = self.get_located_in(entity_id)

        if current is not None and current.object == to_location_id:
            return f"{entity.id} is already at {self._label(destination)}"

        # replace=True displaces the current edge only once the new one validates
        self.create_relation(entity_id, Predicate.LOCATED_IN.value, to_location_id, replace=True)

        if current is None:
            return f"Placed {entity.id} at {self._label(destination)}"
        origin = self.get_entity(current.object)
        origin_label = self._label(origin) if origin else current.object
        return f"Moved {entity.id} from {origin_label} to {self._label(destination)}"

    def transfer_item(self, item_id: str, from_entity_id: str, to_entity_id: str) -> str:
        item = self.require_entity(item_id)
        source = self.require_entity(from_entity_id)
        target = self.require_entity(to_entity_id)

        held = [
            r for r in self.get_relations_by_subject(from_entity_id, Predicate.CONTAINS.value, active_only=True)
            if r.object == item_id
        ]
        if not held:
            raise ContainmentError(f"Entity {from_entity_id} does not contain item {item_id}")

        self.create_relation(to_entity_id, Predicate.CONTAINS.value, item_id)
        self.remove_relation(held[0].id)
        return f"Transferred {self._label(item)} from {self._label(source)} to {self._label(target)}"

    @staticmethod
    def _label(entity: Entity) -> str:
        return str(entity.properties.get("name") or entity.id)
