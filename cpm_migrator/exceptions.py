"""Custom exceptions for cpm-migrator."""


class CpmError(Exception):
    """Base exception for all migrator errors."""


class ProjectParseError(CpmError):
    """Raised when a project or manifest file is not well-formed XML."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(message)


class ManifestError(CpmError):
    """Raised when the central manifest cannot be read or written."""


class ManifestEntryNotFoundError(ManifestError):
    """Raised when a PackageVersion entry is missing from the manifest."""

    def __init__(self, package_id: str, manifest_path: str):
        self.package_id = package_id
        self.manifest_path = manifest_path
        super().__init__(
            f"PackageVersion entry for '{package_id}' not found in {manifest_path}"
        )


class MigrationCancelledError(CpmError):
    """Raised at a cooperative checkpoint once cancellation was requested."""

    def __init__(self) -> None:
        super().__init__("Migration cancelled.")
