"""Nexora domain error hierarchy.

All service-layer errors inherit from NexoraError. The global exception
handler in main.py converts these to structured JSON responses with the
correct HTTP status code and a request_id for traceability.
"""


class NexoraError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(NexoraError):
    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(NexoraError):
    status_code = 401
    code = "UNAUTHORIZED"


class ConflictError(NexoraError):
    status_code = 409
    code = "CONFLICT"


class ValidationError(NexoraError):
    status_code = 400
    code = "VALIDATION_ERROR"


class MissingCredentialError(NexoraError):
    """The caller has no orchestrator API key; raised before any network I/O."""

    status_code = 400
    code = "MISSING_CREDENTIAL"


class InvalidTransitionError(NexoraError):
    status_code = 400
    code = "INVALID_TRANSITION"

    def __init__(self, state: str, action: str) -> None:
        super().__init__(f"Cannot {action} a server that is {state}")
        self.state = state
        self.action = action


class TransportError(NexoraError):
    """Orchestrator call failed: network error, timeout or non-2xx response.

    status is None when no HTTP response was received. body is already
    truncated and is not guaranteed to be JSON.
    """

    status_code = 502
    code = "TRANSPORT_ERROR"

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class PartialBatchFailure(NexoraError):
    """One or more items of a reconciliation batch could not be merged.

    Reported next to the successful results of a pass, never raised through
    a route.
    """

    status_code = 200
    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, failures: list) -> None:
        super().__init__(f"{len(failures)} item(s) could not be reconciled")
        self.failures = failures
