"""
Kernel error taxonomy.

Schema violations, missing-entity references and malformed patches are raised
synchronously at the call that attempted them. Constraint violations are never
exceptions; they are returned as lists of strings by the constraint layer.
"""


class ChronicleError(Exception):
    """Base class for every error raised by the kernel."""

    code = "chronicle_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GraphError(ChronicleError):
    """Raised when a graph operation cannot be carried out."""

    code = "graph_error"
    status_code = 409


class SchemaViolationError(GraphError):
    """A relation breaks its predicate spec (types, required properties, invariants)."""

    code = "schema_violation"
    status_code = 409


class MissingEntityError(GraphError):
    """An operation referenced an entity or relation id that is not in the graph."""

    code = "missing_entity"
    status_code = 404


class DuplicateEntityError(GraphError):
    """add_entity was called with an id that already exists."""

    code = "duplicate_entity"
    status_code = 409


class ContainmentError(GraphError):
    """A transfer named a source that does not currently contain the item."""

    code = "not_contained"
    status_code = 409


class MalformedPatchError(ChronicleError, ValueError):
    """A patch path or value cannot be applied to the World Record. Programmer error."""

    code = "malformed_patch"
    status_code = 422


class SessionNotFoundError(ChronicleError):
    code = "session_not_found"
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class LedgerIntegrityError(ChronicleError):
    """The stored turn log no longer matches its hash chain."""

    code = "ledger_integrity"
    status_code = 500


class StaleSpeculationError(ChronicleError):
    """A speculative turn was committed after the authoritative record moved on."""

    code = "stale_speculation"
    status_code = 409
