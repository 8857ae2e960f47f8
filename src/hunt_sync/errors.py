"""Error taxonomy shared by the server and the client."""


class HuntError(Exception):
    """Base error with a stable code and HTTP status."""

    code = "HUNT_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body used for error responses."""
        return {"error": self.message, "code": self.code}


class ValidationError(HuntError):
    """Client-fixable input problem (bad file type, size, payload)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class CaptureInProgress(ValidationError):
    """A capture for the same stop is already uploading."""

    code = "CAPTURE_IN_PROGRESS"
    status_code = 409


class InvalidTeamCode(HuntError):
    """Team code is unknown or inactive."""

    code = "TEAM_CODE_INVALID"
    status_code = 401

    def __init__(
        self, message: str = "That code didn't work. Check with your host."
    ) -> None:
        super().__init__(message)


class LockConflict(HuntError):
    """Another device holds the team's lock."""

    code = "TEAM_LOCK_CONFLICT"
    status_code = 409

    def __init__(self, remaining_ttl_seconds: int) -> None:
        hours_left = max(1, -(-remaining_ttl_seconds // 3600))
        super().__init__(
            f"Another device is already active for this team "
            f"for the next {hours_left}h."
        )
        self.remaining_ttl_seconds = remaining_ttl_seconds

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["remainingTtlSeconds"] = self.remaining_ttl_seconds
        return payload


class PersistenceError(HuntError):
    """Saving a progress snapshot failed."""

    code = "PERSISTENCE_ERROR"
    status_code = 500


class UploadError(HuntError):
    """An upload strategy failed, or the whole chain was exhausted."""

    code = "UPLOAD_ERROR"
    status_code = 502

    def __init__(self, message: str, failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


class ServerError(HuntError):
    """Unexpected 5xx from any endpoint."""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
