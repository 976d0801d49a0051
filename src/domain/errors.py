class RealtimeSessionError(Exception):
    pass


class MediaAccessError(RealtimeSessionError):
    """Microphone denied or no input device available."""


class SessionCreationError(RealtimeSessionError):
    """The token service did not hand out an ephemeral credential."""

    def __init__(self, message: str, status_code: int | None = None, details: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class SignalingError(RealtimeSessionError):
    """The SDP offer/answer exchange failed or returned a malformed answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AlreadyConnectedError(RealtimeSessionError):
    pass
