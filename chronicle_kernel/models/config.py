"""Kernel configuration."""

import os

from pydantic import BaseModel, Field

ENV_PREFIX = "CHRONICLE_"


class KernelConfig(BaseModel):
    """Tunables shared by the constraint builder, telemetry projector and turn engine."""

    base_move_meters: int = 600
    min_move_meters: int = 150
    move_tolerance_meters: float = 5.0
    nearby_radius_meters: float = 200.0
    nearby_limit: int = 5
    perception_radius_meters: float = 100.0
    direction_radius_meters: float = 150.0
    ledger_tail: int = 5
    default_climate: str = "temperate"
    default_seed: str = "chronicle"
    base_walk_speed_mps: float = Field(gt=0, default=1.4)    # ~5 km/h
    layout_step_meters: float = 100.0
    schema_version: str = "v3.1"

    @classmethod
    def from_env(cls, environ=None) -> "KernelConfig":
        """Build a config, overriding any field from CHRONICLE_<FIELD> variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                overrides[name] = raw
        return cls.model_validate(overrides)
