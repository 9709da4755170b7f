class ToolchatError(Exception):
    """Base class for errors surfaced to the caller of a turn."""


class RequestValidationError(ToolchatError):
    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.details = details or []


class ConfigurationError(ToolchatError):
    pass


class DirectiveError(ToolchatError):
    pass


class GenerationError(ToolchatError):
    pass


class SessionNotFoundError(ToolchatError):
    pass


class DuplicateCapabilityError(ToolchatError):
    pass
