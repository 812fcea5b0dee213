"""On-disk layout of the game directory."""

from pathlib import Path


def library_path(coordinate: str) -> str:
    """Convert a library coordinate to its path relative to the libraries dir.

    ``org.lwjgl:lwjgl:3.3.3`` -> ``org/lwjgl/lwjgl/3.3.3/lwjgl-3.3.3.jar``
    ``org.lwjgl:lwjgl:3.3.3:natives-linux`` -> ``.../lwjgl-3.3.3-natives-linux.jar``
    """
    parts = coordinate.split(":")
    if len(parts) < 3:
        return coordinate.replace(":", "/") + ".jar"

    group, artifact, version = parts[0], parts[1], parts[2]
    extension = "jar"
    if "@" in version:
        version, extension = version.split("@", 1)
    file_name = f"{artifact}-{version}"
    if len(parts) >= 4:
        classifier = parts[3]
        if "@" in classifier:
            classifier, extension = classifier.split("@", 1)
        file_name += f"-{classifier}"
    return f"{group.replace('.', '/')}/{artifact}/{version}/{file_name}.{extension}"


class GameDirectory:
    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    @property
    def versions_dir(self) -> Path:
        return self.base_path / "versions"

    @property
    def libraries_dir(self) -> Path:
        return self.base_path / "libraries"

    @property
    def assets_dir(self) -> Path:
        return self.base_path / "assets"

    @property
    def instances_dir(self) -> Path:
        return self.base_path / "instances"

    def version_dir(self, version_id: str) -> Path:
        return self.versions_dir / version_id

    def version_jar_path(self, version_id: str) -> Path:
        return self.version_dir(version_id) / f"{version_id}.jar"

    def version_json_path(self, version_id: str) -> Path:
        return self.version_dir(version_id) / f"{version_id}.json"

    def natives_dir(self, version_id: str) -> Path:
        return self.version_dir(version_id) / "natives"

    def library_path(self, coordinate: str) -> Path:
        return self.libraries_dir / library_path(coordinate)

    def asset_index_path(self, index_id: str) -> Path:
        return self.assets_dir / "indexes" / f"{index_id}.json"

    def asset_path(self, sha1: str) -> Path:
        return self.assets_dir / "objects" / sha1[:2] / sha1

    def instance_dir(self, name: str) -> Path:
        return self.instances_dir / name

    def ensure_version_dir(self, version_id: str):
        self.natives_dir(version_id).mkdir(parents=True, exist_ok=True)

    def is_version_installed(self, version_id: str) -> bool:
        return self.version_jar_path(version_id).exists() and self.version_json_path(version_id).exists()
