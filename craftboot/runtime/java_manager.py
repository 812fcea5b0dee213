"""Java runtime discovery for Minecraft."""

import logging
import os
import platform
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import JavaNotFound
from ..versions.models import VersionMetadata

logger = logging.getLogger(__name__)

_VERSION = re.compile(r'version "([^"]+)"')
_RELEASE = re.compile(r"^(\d+)\.(\d+)")
_SNAPSHOT = re.compile(r"^(\d{2})w\d{2}[a-z]$")


@dataclass(frozen=True)
class JavaInstallation:
    path: Path
    major_version: int


def java_executable_name() -> str:
    return "java.exe" if platform.system() == "Windows" else "java"


def parse_java_version(output: str) -> Optional[int]:
    """Major version from `java -version` output ("1.8.0_333" -> 8, "17.0.4" -> 17)."""
    match = _VERSION.search(output)
    if not match:
        return None
    parts = match.group(1).split(".")
    try:
        if parts[0] == "1" and len(parts) > 1:
            return int(parts[1])
        return int(re.match(r"\d+", parts[0]).group(0))
    except (AttributeError, ValueError):
        return None


# Snapshot year -> release line it leads up to
SNAPSHOT_YEARS = {22: 19, 23: 20, 24: 21}


def parse_minecraft_version(version: str) -> Optional[Tuple[int, int]]:
    """(major, minor) of a release id, or the approximate release of a snapshot."""
    snapshot = _SNAPSHOT.match(version)
    if snapshot:
        return 1, SNAPSHOT_YEARS.get(int(snapshot.group(1)), 21)
    release = _RELEASE.match(version)
    if release:
        return int(release.group(1)), int(release.group(2))
    return None


def required_java_version(metadata: VersionMetadata) -> int:
    """Java major version a Minecraft version needs."""
    if metadata.java_version is not None:
        return metadata.java_version.major_version
    parsed = parse_minecraft_version(metadata.id)
    if parsed is None:
        return 8
    minor = parsed[1]
    if minor >= 21:
        return 21
    if minor >= 18:
        return 17
    if minor == 17:
        return 16
    if minor == 16:
        return 11
    return 8


class JavaManager:
    COMMON_PATHS = [
        Path("C:/Program Files/Java"),
        Path("C:/Program Files/Eclipse Adoptium"),
        Path("C:/Program Files (x86)/Java"),
        Path("/usr/lib/jvm"),
        Path("/Library/Java/JavaVirtualMachines"),
    ]

    def __init__(self, runtime_dir: Optional[Path] = None):
        self.runtime_dir = runtime_dir

    def get_java_version(self, java_path: Path) -> Optional[int]:
        """Get Java major version."""
        try:
            result = subprocess.run([str(java_path), "-version"], capture_output=True, text=True, timeout=15)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Could not run %s: %s", java_path, e)
            return None
        # version is on stderr
        return parse_java_version(result.stderr or result.stdout)

    def candidate_paths(self) -> List[Path]:
        exe = java_executable_name()
        candidates = []

        on_path = shutil.which("java")
        if on_path:
            candidates.append(Path(on_path))

        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            candidates.append(Path(java_home) / "bin" / exe)

        roots = list(self.COMMON_PATHS)
        if self.runtime_dir is not None:
            roots.append(self.runtime_dir)
        for base in roots:
            if not base.is_dir():
                continue
            for item in sorted(base.iterdir()):
                for java_bin in (item / "bin" / exe, item / "Contents" / "Home" / "bin" / exe):
                    if java_bin.exists():
                        candidates.append(java_bin)
        return candidates

    def discover(self) -> List[JavaInstallation]:
        """Detect installed Java runtimes, one per distinct executable."""
        installations: Dict[Path, JavaInstallation] = {}
        for candidate in self.candidate_paths():
            key = candidate.resolve()
            if key in installations:
                continue
            major = self.get_java_version(candidate)
            if major is None:
                logger.debug("Ignoring %s, version could not be determined", candidate)
                continue
            installations[key] = JavaInstallation(path=candidate, major_version=major)
            logger.debug("Found Java %d at %s", major, candidate)

        if not installations:
            logger.warning("No Java installations found")
        return list(installations.values())


def select_java(installations: Sequence[JavaInstallation], required: int) -> JavaInstallation:
    """Exact major version, else the closest newer one, else anything with a warning."""
    for installation in installations:
        if installation.major_version == required:
            return installation

    newer = sorted((i for i in installations if i.major_version > required), key=lambda i: i.major_version)
    if newer:
        logger.warning("Using Java %d instead of required Java %d", newer[0].major_version, required)
        return newer[0]

    if installations:
        fallback = installations[0]
        logger.warning("No compatible Java found, using Java %d (may not work!)", fallback.major_version)
        return fallback

    raise JavaNotFound(
        f"No Java installation found (Java {required} required)",
        hint="install a Java runtime or set JAVA_HOME",
    )
