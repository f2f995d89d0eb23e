"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a generic, client-safe ``message``. Upstream failures can
additionally carry the collaborator's status code and raw message; those are
only echoed to clients through the debug channel (see ``main.py``).
"""


class UptodateError(Exception):
    """Base class for all domain errors."""

    kind = "error"
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPayload(UptodateError):
    """Malformed or missing request fields. Raised before any side effect."""

    kind = "invalid_payload"
    status_code = 400
    default_message = "Invalid payload"


class NotFound(UptodateError):
    """No snapshot reachable via the fallback chain for the requested date."""

    kind = "not_found"
    status_code = 404
    default_message = "No snapshot available yet. Please try again shortly."


class SchemaError(UptodateError):
    """Summarization provider returned unparsable or invalid content."""

    kind = "schema_error"
    status_code = 502
    default_message = "Summarization provider returned an invalid response"


class UpstreamError(UptodateError):
    """An external collaborator failed at the transport level."""

    kind = "upstream_error"
    status_code = 502
    default_message = "Upstream service unavailable"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_message = upstream_message


class IngestionInProgress(UptodateError):
    """Another ingestion run is still active."""

    kind = "ingestion_in_progress"
    status_code = 409
    default_message = "An ingestion run is already in progress"
