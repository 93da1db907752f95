"""Error types raised by the generation and storage layers."""

from typing import Optional


class MediaGeneratorError(Exception):
    """Base class for every domain error in this package."""


class ConfigurationError(MediaGeneratorError):
    """Required configuration is missing or invalid."""


class InvalidRequestError(MediaGeneratorError):
    """Malformed or out-of-range input."""


class RemoteCallError(MediaGeneratorError):
    """The remote generation call itself failed."""


class PollTimeoutError(MediaGeneratorError):
    """A remote operation did not finish within the polling bound."""


class NoArtifactsReturnedError(MediaGeneratorError):
    """The remote operation completed without any results."""


class NoArtifactsPersistedError(MediaGeneratorError):
    """Every result of a remote operation was skipped."""


class DownloadError(MediaGeneratorError):
    """Fetching a generated artifact failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ImageFetchError(MediaGeneratorError):
    """Fetching a caller-supplied image URL failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(MediaGeneratorError):
    """Writing an artifact or its metadata to disk failed."""


class ArtifactNotFoundError(MediaGeneratorError):
    """No artifact (or no local copy of it) exists for an identifier."""
