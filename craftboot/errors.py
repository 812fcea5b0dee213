"""Launcher error types."""

from typing import Optional


class LauncherError(Exception):
    """Base class for every error surfaced to the user."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message


class CatalogUnavailable(LauncherError):
    pass


class VersionNotFound(LauncherError):
    def __init__(self, version_id: str):
        super().__init__(
            f"Version '{version_id}' not found in the version manifest",
            hint="use the list command to see valid versions",
        )
        self.version_id = version_id


class DescriptorCorrupt(LauncherError):
    pass


class DownloadFailed(LauncherError):
    pass


class VerificationError(DownloadFailed):
    """Downloaded bytes do not match the expected size or digest."""


class SizeMismatch(VerificationError):
    def __init__(self, expected: int, actual: int, name: str = ""):
        super().__init__(f"Size mismatch for {name or 'artifact'}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class HashMismatch(VerificationError):
    def __init__(self, expected: str, actual: str, name: str = ""):
        super().__init__(f"SHA1 mismatch for {name or 'artifact'}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ExtractionFailed(LauncherError):
    pass


class ClasspathEmpty(LauncherError):
    def __init__(self, version_id: str):
        super().__init__(
            f"Classpath for {version_id} has no entries",
            hint=f"run the prepare command for {version_id} first",
        )


class UnknownLegacyVariable(LauncherError):
    def __init__(self, name: str):
        super().__init__(f"Unknown legacy argument variable: ${{{name}}}")
        self.name = name


class LaunchFailed(LauncherError):
    pass


class JavaNotFound(LauncherError):
    pass


class InstanceError(LauncherError):
    pass


class AuthenticationError(LauncherError):
    pass
