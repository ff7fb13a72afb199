"""Error taxonomy for the daily queue lifecycle."""


class VibecheckError(Exception):
    """Base class for all daily queue errors."""


class NoCredential(VibecheckError):
    """No usable external-source session. The user has to connect first."""


class BuildFailed(VibecheckError):
    """Credential was valid but sourcing or persisting today's queue failed."""


class MutationFailed(VibecheckError):
    """A rate or skip write did not persist. Safe to retry as-is."""


class DuplicateCompletion(VibecheckError):
    """Another caller already completed this queue."""


class SourceError(VibecheckError):
    """A candidate source call failed at the transport level."""
