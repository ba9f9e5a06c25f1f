"""lyritop exception hierarchy."""


class LyriTopError(Exception):
    """Base exception for all lyritop errors."""
    pass


# === Config Errors ===

class ConfigurationError(LyriTopError):
    """Configuration is invalid or missing required values."""
    pass


class CorruptedConfig(ConfigurationError):
    """Config file is corrupted and cannot be parsed."""
    pass


# === Lyric Source Errors ===

class LyricSourceError(LyriTopError):
    """Base exception for lyric mapping and lyric file errors."""
    pass


class MappingFileError(LyricSourceError):
    """A lyric-mapping file could not be read or is not a JSON array."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load lyric mapping '{path}': {reason}")


class LyricFileError(LyricSourceError):
    """A lyric file could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load lyric file '{path}': {reason}")


# === Provider Errors ===

class ProviderError(LyriTopError):
    """Base exception for media-source provider errors."""
    pass


class PositionUnavailable(ProviderError):
    """The playback position of a media source could not be fetched."""
    pass
