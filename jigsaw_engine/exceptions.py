"""Exceptions raised by the jigsaw engine."""


class JigsawEngineError(Exception):
    """Base class for engine errors."""


class GeometryEngineError(JigsawEngineError):
    """A boolean or offset operation failed in the geometry backend."""


class ReleasedHandleError(JigsawEngineError):
    """A path handle was used after it had been released."""


class ConfigurationError(JigsawEngineError):
    """Settings passed field validation but cannot be used (e.g. unknown sheet preset)."""
