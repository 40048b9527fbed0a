"""Exception hierarchy shared by the ccbell pipeline stages."""


class CcbellError(Exception):
    """Base exception for ccbell failures that map to exit code 1."""
    pass


class ConfigError(CcbellError):
    """Raised for unreadable, malformed or invalid configuration."""
    pass


class StateSaveError(CcbellError):
    """Raised when the cooldown decision was made but could not be persisted.

    The decision itself is available as ``in_cooldown`` so the caller can
    log the failure and carry on.
    """

    def __init__(self, message: str, in_cooldown: bool = False):
        super().__init__(message)
        self.in_cooldown = in_cooldown


class SoundResolutionError(CcbellError):
    """Raised when a sound specification cannot be mapped to a safe, existing file."""
    pass


class PlaybackError(CcbellError):
    """Raised when no audio player can be launched."""
    pass


class PackError(CcbellError):
    """Raised when an installed sound pack cannot be listed, selected or removed."""
    pass
