"""Error taxonomy shared by the automod rule engine and its collaborators."""


class AutomodError(Exception):
    """Base class for every error raised by the automod package."""


class ConfigurationError(AutomodError):
    """A rule kind, punishment or parameter list was rejected when adding a rule."""


class PlatformError(AutomodError):
    """A Discord call made on behalf of a verdict did not go through."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}" if detail else f"{operation} failed")


class PermissionDenied(PlatformError):
    """Discord refused the action, or the bot knows up front that it may not perform it."""


class NotFound(PlatformError):
    """The message, member or channel the action targets no longer exists."""


class TransientPlatformError(PlatformError):
    """Network or rate limit failure; retrying is left to the caller."""
