"""Error taxonomy shared by the generation pipeline and the kanban engine."""


class IdeaboardError(Exception):
    """Base class for every error raised by the ideaboard core."""


class ConfigError(IdeaboardError):
    """Missing or invalid provider / model selection."""


class TransportError(IdeaboardError):
    """Non-2xx response or network failure talking to a model backend."""

    def __init__(self, message: str, status: int | None = None, endpoint: str = ""):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class AuthError(TransportError):
    """HTTP 401 from a hosted provider: invalid or missing credential."""

    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(message, status=401, endpoint=endpoint)


class ParseError(IdeaboardError):
    """Model output could not be turned into the expected structure."""


class PersistError(IdeaboardError):
    """The project store failed to write."""


class UnknownEntityError(IdeaboardError):
    """A mutation referenced a task or feature the project does not contain."""


class GenerationCancelled(IdeaboardError):
    """A generation run was cancelled by the user. Not an error condition."""
