"""
Errors
======
Exception types raised across component boundaries.

Malformed model output is never one of these: the response parser degrades
it to a best-effort structure instead of raising.
"""


class WorkerError(Exception):
    """Base class for all worker errors."""


class ConfigError(WorkerError):
    """Required configuration is missing or invalid."""


class MalformedJobError(WorkerError):
    """A queue payload could not be decoded into a job."""


class JobNotFoundError(WorkerError):
    """The job store has no record with the requested id."""


class ModelClientError(WorkerError):
    """Every model provider failed to return a completion."""


class SourceHostError(WorkerError):
    """The source-hosting API returned an unexpected error."""


class PatchApplicationError(WorkerError):
    """A set of line edits could not be applied mechanically."""
