class ChatError(Exception):
    """Base class for everything the chat client raises."""


class ValidationError(ChatError):
    """Blank message, unknown partner or otherwise rejected input. Not retried."""


class AuthError(ChatError):
    """Missing, expired or invalid identity token; the session has to be renewed."""


class StorageError(ChatError):
    """The server could not load or persist chat data. Safe to retry."""


class ChannelError(ChatError):
    """The live channel dropped or could not be joined. Never fatal."""
