"""Exceptions raised by the app builder."""


class RajAIError(Exception):
    """Base class for app builder errors."""


class ConfigurationError(RajAIError):
    """The model credential is missing. Not retryable without an external fix."""


class TransportError(RajAIError):
    """The model endpoint could not be reached or the stream broke."""


class CredentialRejectedError(TransportError):
    """The provider rejected the configured credential."""


class StorageError(RajAIError):
    """Reading or writing the persisted session failed."""


class InvalidTransitionError(RajAIError):
    """A session operation was called from a phase that does not allow it."""


class SessionBusyError(InvalidTransitionError):
    """A generation is already in flight."""
