"""Version management module."""

from .manager import VersionManager
from .download_manager import AcquisitionReport, DownloadManager
from .models import VersionManifest, VersionInfo, VersionMetadata
from .rules import Environment, evaluate

__all__ = [
    "VersionManager",
    "DownloadManager",
    "AcquisitionReport",
    "VersionManifest",
    "VersionInfo",
    "VersionMetadata",
    "Environment",
    "evaluate",
]
