"""Turn diff: what changed for the player between two telemetry snapshots."""

from chronicle_kernel.models.telemetry import TurnDiff, TurnTelemetry


def _elapsed(telemetry: TurnTelemetry) -> int:
    time = telemetry.systems.time
    return time.elapsed_minutes if time is not None else 0


def compute_turn_diff(before: TurnTelemetry, after: TurnTelemetry) -> TurnDiff:
    time_delta = _elapsed(after) - _elapsed(before)
    a, b = before.player.position, after.player.position
    moved = a.x != b.x or a.y != b.y or (a.z or 0.0) != (b.z or 0.0)

    held_before = {item.id for item in before.player.inventory}
    new_items = [item.name for item in after.player.inventory if item.id not in held_before]

    parts = []
    if moved:
        parts.append(f"Moved to {after.location.name}")
    if new_items:
        parts.append(f"Picked up {', '.join(new_items)}")
    if not parts and time_delta > 0:
        parts.append(f"{time_delta} minutes pass")

    return TurnDiff(
        summary=". ".join(parts) or "No major changes",
        time_delta_minutes=time_delta,
        moved=moved,
        new_location_name=after.location.name if moved else None,
        new_items=new_items,
    )
