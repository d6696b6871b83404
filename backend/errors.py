class ChallengeServiceError(Exception):
    """Base error for the challenge and capture core. Carries the HTTP status the boundary should use."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClientInputError(ChallengeServiceError):
    """Bad or missing field, malformed hash, oversized or wrong-type file."""

    status_code = 400


class NotFoundError(ChallengeServiceError):
    """Challenge or photo absent or expired."""

    status_code = 404


class IntegrityError(ClientInputError):
    """Capture request does not belong to the client that owns the challenge."""


class InfrastructureError(ChallengeServiceError):
    """Disk read/write failure or timeout."""

    status_code = 500
