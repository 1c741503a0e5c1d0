"""Exception hierarchy for audiodupes."""


class AudioDupesError(Exception):
    """Base class for all audiodupes errors."""


class ConfigurationError(AudioDupesError, ValueError):
    """Invalid configuration or a fingerprint database built with other settings."""


class StoreIntegrityError(AudioDupesError):
    """The fingerprint database holds data it can't represent."""


class DuplicatePathError(StoreIntegrityError):
    """A file record already exists for the path being saved."""


class RecordNotFoundError(StoreIntegrityError):
    """No file record exists for the requested ID."""


class StoreClosedError(AudioDupesError, RuntimeError):
    """The fingerprint database was used after close()."""


class GeneratorError(AudioDupesError):
    """The external fingerprint generator failed for a file."""


class EmptyFingerprintError(GeneratorError):
    """The audio was too short to produce a fingerprint."""


class ScanError(AudioDupesError):
    """A scan was aborted while processing a specific file."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause
