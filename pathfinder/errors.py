"""Exceptions raised by the path discovery engine."""


class PathfinderError(Exception):
    """Base exception for pathfinder."""


class ValidationError(PathfinderError, ValueError):
    """Request rejected before any graph query was issued."""


class TargetNotFoundError(PathfinderError, LookupError):
    """Target handle could not be resolved to a user id."""


class GraphUnavailableError(PathfinderError, RuntimeError):
    """Graph store unreachable or no discovery strategy completed."""


class PathBoundError(PathfinderError, ValueError):
    """Path record longer than the supported hop bound."""
