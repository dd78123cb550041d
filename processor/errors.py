"""Failures a scan attempt can end with."""


class ScanError(Exception):
    """Base class for scan pipeline failures."""


class MissingCredential(ScanError):
    """No bearer credential was configured; nothing was sent over the network."""

    def __init__(self, message: str = 'API Key missing. Cannot scan.'):
        super().__init__(message)


class SourceUnreachable(ScanError):
    """Every forwarding path failed or returned a structurally invalid body."""


class NormalizationFailed(ScanError):
    """The extraction service errored or returned unparsable output."""
