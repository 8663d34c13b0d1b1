"""Entity/Relation graph models — typed nodes, typed directed edges, predicate specs."""

import math
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict


class EntityType(str, Enum):
    LOCATION = "location"
    ACTOR = "actor"
    ITEM = "item"
    REGION = "region"


class PropertyType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


UNIQUE_PER_SUBJECT = "unique_per_subject"


class Position(BaseModel):
    """A point in world space, in meters. North is +y."""

    x: float
    y: float
    z: Optional[float] = None

    def distance_to(self, other: "Position") -> float:
        dz = (self.z or 0.0) - (other.z or 0.0)
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + dz ** 2)


class Entity(BaseModel):
    """A typed, uniquely identified node. Type strings outside EntityType are allowed."""

    id: str
    type: str                               # e.g., "location", "actor"
    properties: dict = {}                   # Open, schema-light attributes
    tags: Set[str] = set()


class Relation(BaseModel):
    """A typed, directed edge between two entities, optionally time-bounded."""

    id: str
    predicate: str                          # e.g., "located_in"
    subject: str
    object: str
    directed: bool = True
    properties: dict = {}
    t0: Optional[int] = None                # First tick the relation holds
    t1: Optional[int] = None                # First tick it no longer holds
    caused_by: Optional[str] = None         # Event / turn id that created it

    def is_active(self, tick: Optional[int] = None) -> bool:
        """True when ``tick`` falls inside the half-open window [t0, t1)."""
        if tick is None:
            return True
        if self.t0 is not None and tick < self.t0:
            return False
        if self.t1 is not None and tick >= self.t1:
            return False
        return True


class PredicateSpec(BaseModel):
    """Validation rules for one predicate."""

    model_config = ConfigDict(frozen=True)

    predicate: str
    subject_types: Tuple[str, ...]
    object_types: Tuple[str, ...]
    required_properties: Dict[str, PropertyType] = {}
    invariants: Tuple[str, ...] = ()
    symmetric: bool = False


class PredicateRegistry:
    """
    Immutable predicate table handed to a GraphStore at construction.

    Different sessions (and tests) may use different tables; nothing here is
    process-global.
    """

    def __init__(self, specs=()):
        self._specs: Mapping[str, PredicateSpec] = MappingProxyType(
            {spec.predicate: spec for spec in specs}
        )

    def get(self, predicate: str) -> Optional[PredicateSpec]:
        return self._specs.get(predicate)

    def with_spec(self, spec: PredicateSpec) -> "PredicateRegistry":
        """Return a new registry with ``spec`` added (or replaced)."""
        specs = dict(self._specs)
        specs[spec.predicate] = spec
        return PredicateRegistry(specs.values())

    @property
    def predicates(self) -> Tuple[str, ...]:
        return tuple(self._specs)

    def __contains__(self, predicate: object) -> bool:
        return predicate in self._specs

    def __iter__(self) -> Iterator[PredicateSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


class Predicate(str, Enum):
    EXIT_TO = "exit_to"
    LOCATED_IN = "located_in"
    CONTAINS = "contains"


DEFAULT_PREDICATES = PredicateRegistry([
    PredicateSpec(
        predicate=Predicate.EXIT_TO.value,
        subject_types=(EntityType.LOCATION.value,),
        object_types=(EntityType.LOCATION.value,),
        required_properties={"direction": PropertyType.STRING},
    ),
    PredicateSpec(
        predicate=Predicate.LOCATED_IN.value,
        subject_types=(EntityType.ACTOR.value, EntityType.ITEM.value),
        object_types=(EntityType.LOCATION.value,),
        invariants=(UNIQUE_PER_SUBJECT,),
    ),
    PredicateSpec(
        predicate=Predicate.CONTAINS.value,
        subject_types=(EntityType.LOCATION.value, EntityType.ACTOR.value),
        object_types=(EntityType.ITEM.value,),
    ),
])
