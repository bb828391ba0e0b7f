"""Custom exception hierarchy for mcctl."""


class MCCtlError(Exception):
    """Base for all mcctl errors."""


# ── Install pipeline ──────────────────────────────────────────────


class InstallError(MCCtlError):
    """Resolving, downloading or verifying an artifact failed."""


class NetworkError(InstallError):
    """Transport failure or non-success HTTP status from a vendor API."""


class MalformedMetadataError(InstallError):
    """Vendor API returned a body that does not match its schema."""


class NoBuildsFoundError(InstallError):
    """The vendor has no builds for the requested version."""


class NoStableLoaderError(InstallError):
    """No loader (or installer) is published for the requested version."""


class ArtifactWriteError(InstallError):
    """The artifact could not be written to disk."""


class DigestMismatchError(InstallError):
    """Downloaded artifact does not match the published digest."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"digest mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


# ── Server process control ────────────────────────────────────────


class ServerControlError(MCCtlError):
    """A lifecycle operation on the managed server failed."""


class SpawnError(ServerControlError):
    """The OS could not launch the server process."""


class StopCommandError(ServerControlError):
    """The stop command could not be written to the server's stdin."""


class InconsistentStateError(ServerControlError):
    """Slot says running but holds no stdin handle."""
