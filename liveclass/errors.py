"""Domain errors for class admission and notification dispatch."""


class LiveClassError(Exception):
    """Base exception for the live-class core."""


class AccessDenied(LiveClassError):
    """Admission refused: unknown or foreign identifier, unassigned teacher, batch/subject mismatch.

    Missing records are reported through this error too, so a caller cannot tell
    an invalid link apart from one that belongs to someone else.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransientProviderError(LiveClassError):
    """Mail or group provider failure for a single item; the scan carries on."""


class MailerNotConfigured(LiveClassError):
    """Mail credentials are missing; nothing can be delivered in this invocation."""
