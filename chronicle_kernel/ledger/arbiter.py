"""
Patch Arbiter — the single sanctioned way to mutate a World Record.

Behavioral Contract:
- Copy-on-write. The input record is never mutated; a new record is returned.
- One call is one turn: ``meta.turn`` increments exactly once, even for an
  empty patch list.
- One ledger line per patch: ``note`` (or the default note) plus a provenance
  suffix when ``by`` or ``turn`` is present.
- ``set`` assigns at the pointer, creating intermediate maps. ``merge`` is a
  shallow, one-level merge into the map at the pointer (created if absent).
- Malformed pointers are programmer errors and raise MalformedPatchError.
"""

from typing import Any, Callable, Dict, Iterable, List, Union

from pydantic import ValidationError

from chronicle_kernel.errors import MalformedPatchError
from chronicle_kernel.models.record import Patch, PatchOp, WorldRecord

DEFAULT_NOTE = "State updated"

PatchLike = Union[Patch, dict]


def parse_pointer(path: str) -> List[str]:
    """Split a slash-delimited pointer into unescaped tokens (``~1`` -> ``/``, ``~0`` -> ``~``)."""
    if not isinstance(path, str) or not path.startswith("/"):
        raise MalformedPatchError(f'Path must start with "/": {path!r}')
    if path == "/":
        raise MalformedPatchError("Path must address a field below the record root")
    return [token.replace("~1", "/").replace("~0", "~") for token in path.split("/")[1:]]


def make_pointer(*tokens: str) -> str:
    """Inverse of ``parse_pointer``."""
    return "".join("/" + str(token).replace("~", "~0").replace("/", "~1") for token in tokens)


def _child(container: Any, token: str, path: str, create: bool) -> Any:
    if isinstance(container, dict):
        if token not in container or container[token] is None:
            if not create:
                return None
            container[token] = {}
        return container[token]
    if isinstance(container, list):
        index = _list_index(container, token, path)
        if index >= len(container):
            raise MalformedPatchError(f"Index {token} out of range in {path}")
        return container[index]
    raise MalformedPatchError(f"Cannot traverse through a {type(container).__name__} at {path}")


def _list_index(container: list, token: str, path: str) -> int:
    if token == "-":
        return len(container)
    if not token.isdigit():
        raise MalformedPatchError(f"Invalid list index {token!r} in {path}")
    return int(token)


def _assign(container: Any, token: str, value: Any, path: str) -> None:
    if isinstance(container, dict):
        container[token] = value
        return
    if isinstance(container, list):
        index = _list_index(container, token, path)
        if index == len(container):
            container.append(value)
        elif index < len(container):
            container[index] = value
        else:
            raise MalformedPatchError(f"Index {token} out of range in {path}")
        return
    raise MalformedPatchError(f"Cannot assign into a {type(container).__name__} at {path}")


def _apply_set(data: dict, patch: Patch) -> None:
    tokens = parse_pointer(patch.path)
    parent = data
    for token in tokens[:-1]:
        parent = _child(parent, token, patch.path, create=True)
    _assign(parent, tokens[-1], patch.value, patch.path)


def _apply_merge(data: dict, patch: Patch) -> None:
    if not isinstance(patch.value, dict):
        raise MalformedPatchError(f"Merge value at {patch.path} must be an object")
    tokens = parse_pointer(patch.path)
    parent = data
    for token in tokens[:-1]:
        parent = _child(parent, token, patch.path, create=True)
    existing = _child(parent, tokens[-1], patch.path, create=False)
    # Shallow: nested maps in value replace, never deep-merge
    merged = {**existing, **patch.value} if isinstance(existing, dict) else dict(patch.value)
    _assign(parent, tokens[-1], merged, patch.path)


_OPERATIONS: Dict[PatchOp, Callable[[dict, Patch], None]] = {
    PatchOp.SET: _apply_set,
    PatchOp.MERGE: _apply_merge,
}


def format_ledger_entry(patch: Patch, default_note: str = DEFAULT_NOTE) -> str:
    note = patch.note or default_note
    provenance = []
    if patch.by:
        provenance.append(patch.by)
    if patch.turn is not None:
        provenance.append(f"T{patch.turn}")
    return f"{note} [{' '.join(provenance)}]" if provenance else note


def coerce_patches(patches: Iterable[PatchLike]) -> List[Patch]:
    try:
        return [p if isinstance(p, Patch) else Patch.model_validate(p) for p in patches]
    except ValidationError as exc:
        raise MalformedPatchError(f"Invalid patch: {exc}") from exc


def apply_patches(
    record: WorldRecord,
    patches: Iterable[PatchLike],
    default_note: str = DEFAULT_NOTE,
) -> WorldRecord:
    """Apply an ordered patch batch and return the next record."""
    batch = coerce_patches(patches)
    data = record.model_dump(mode="json")
    data["meta"]["turn"] = data["meta"].get("turn", 0) + 1

    for patch in batch:
        _OPERATIONS[PatchOp(patch.op)](data, patch)
        data["ledger"] = data.get("ledger") or []
        data["ledger"].append(format_ledger_entry(patch, default_note))

    try:
        return WorldRecord.model_validate(data)
    except ValidationError as exc:
        raise MalformedPatchError(f"Patched record no longer validates: {exc}") from exc
