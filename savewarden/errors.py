"""
Custom exception hierarchy for SaveWarden.
"""

class SaveWardenError(Exception):
    """Base exception for all savewarden errors."""
    pass

class CaptureError(SaveWardenError):
    pass

class CaptureFailedError(CaptureError):
    pass

class SourceUnavailableError(SaveWardenError):
    """The live save directory is missing or is not a directory."""
    pass

class PurgeFailedError(SaveWardenError):
    pass

class RestoreError(SaveWardenError):
    pass

class NoArchivesFoundError(RestoreError):
    pass

class NoManualArchiveError(RestoreError):
    pass

class RestoreFailedError(RestoreError):
    pass

class InvalidSelectionError(RestoreError):
    pass

class ConfigError(SaveWardenError):
    pass

class ProfileNotFoundError(ConfigError):
    pass

class ProfileValidationError(ConfigError):
    pass

class ProfileExistsError(ConfigError):
    pass

class SchedulerError(SaveWardenError):
    pass

class DaemonError(SaveWardenError):
    pass
