"""Error taxonomy shared by the store adapters and the core services.

Every error carries the HTTP-style status code the transport layer should
answer with. ``Conflict`` is recovered by the toggle engine and never leaves
it; ``UpstreamFailure`` aborts a cascade at the step that raised it.
"""


class VideoHubError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidReference(VideoHubError):
    """Raised when an id is missing or malformed."""

    status_code = 400


class NotFound(VideoHubError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class Unauthorized(VideoHubError):
    """Raised when the actor does not own the entity it is acting on."""

    status_code = 403


class Conflict(VideoHubError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409


class DuplicateKeyError(Conflict):
    """Raised by an entity store when an insert hits a unique index."""

    def __init__(self, collection: str, key: dict[str, object]) -> None:
        super().__init__(f"Duplicate key in {collection}: {key}")
        self.collection = collection
        self.key = key


class InvalidOperation(VideoHubError):
    """Raised for requests that are well-formed but not allowed."""

    status_code = 400


class UpstreamFailure(VideoHubError):
    """Raised when the entity store or blob store call itself fails."""

    status_code = 502

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step
