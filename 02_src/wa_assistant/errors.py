"""Error taxonomy shared by all components."""


class AssistantError(Exception):
    """Base class for errors raised inside the assistant."""


class ValidationFault(AssistantError):
    """Malformed webhook payload or handshake."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ToolError(AssistantError):
    """A tool could not produce a result."""

    def __init__(self, message: str, tool: str | None = None):
        super().__init__(message)
        self.tool = tool


class GenerationError(AssistantError):
    """The completion provider failed or timed out."""


class PersistenceError(AssistantError):
    """The backing store is unreachable or rejected a write."""


class WhatsAppError(AssistantError):
    """The WhatsApp Cloud API rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MediaError(AssistantError):
    """Media download or transcription failed."""

    def __init__(self, message: str, media_id: str | None = None):
        super().__init__(message)
        self.media_id = media_id
