"""Turn log entries and turn outcomes."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from chronicle_kernel.models.record import Patch, WorldRecord
from chronicle_kernel.models.telemetry import TurnConstraints, TurnDiff


class TurnLogEntry(BaseModel):
    """
    One entry per attempted turn. Accepted entries carry the exact ordered patch
    batch that was applied, so the session can be replayed from its initial record.
    """

    id: str
    session_id: str
    turn: int                               # Turn counter after the attempt
    note: str
    by: Optional[str] = None
    patches: List[Patch] = []               # Policy patches followed by system patches
    accepted: bool = True
    violations: List[str] = []
    record_hash: Optional[str] = None       # sha256 of the resulting record
    created_at: datetime

    # INTEGRITY
    signature: str = ""
    prior_record_hash: Optional[str] = None


class TurnResult(BaseModel):
    accepted: bool
    turn: int
    violations: List[str] = []
    applied_patches: List[Patch] = []
    constraints: Optional[TurnConstraints] = None
    diff: Optional[TurnDiff] = None         # Player-facing change, accepted turns only
    record: WorldRecord
    log_entry_id: Optional[str] = None
