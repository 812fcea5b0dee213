"""Data models for Minecraft version documents.

Every renamed JSON key is declared with an explicit alias, so each model doubles
as the field mapping table of the document it parses.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class VersionType(str, Enum):
    RELEASE = "release"
    SNAPSHOT = "snapshot"
    OLD_BETA = "old_beta"
    OLD_ALPHA = "old_alpha"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# Catalog

class LatestVersions(_Document):
    release: str
    snapshot: str


class VersionInfo(_Document):
    id: str
    type: VersionType
    url: str
    time: datetime
    release_time: datetime = Field(alias="releaseTime")
    sha1: Optional[str] = None
    compliance_level: int = Field(default=0, alias="complianceLevel")


class VersionManifest(_Document):
    latest: LatestVersions
    versions: List[VersionInfo]

    def find(self, version_id: str) -> Optional[VersionInfo]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None


# Rules

class RuleAction(str, Enum):
    ALLOW = "allow"
    DISALLOW = "disallow"


class RuleOs(_Document):
    name: Optional[str] = None
    arch: Optional[str] = None
    version: Optional[str] = None


class Rule(_Document):
    action: RuleAction
    os: Optional[RuleOs] = None
    features: Optional[Dict[str, bool]] = None

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, value: Any) -> Any:
        if value == "deny":
            return RuleAction.DISALLOW
        return value


# Arguments

class LiteralArgument(_Document):
    value: str


class ConditionalSingle(_Document):
    rules: List[Rule] = Field(default_factory=list)
    value: str


class ConditionalMultiple(_Document):
    rules: List[Rule] = Field(default_factory=list)
    value: List[str]


ArgumentTemplate = Union[LiteralArgument, ConditionalSingle, ConditionalMultiple]


def parse_argument(raw: Any) -> ArgumentTemplate:
    """Dispatch one raw argument entry to its template variant."""
    if isinstance(raw, (LiteralArgument, ConditionalSingle, ConditionalMultiple)):
        return raw
    if isinstance(raw, str):
        return LiteralArgument(value=raw)
    if isinstance(raw, dict):
        value = raw.get("value")
        if isinstance(value, str):
            return ConditionalSingle.model_validate(raw)
        if isinstance(value, list):
            return ConditionalMultiple.model_validate(raw)
        raise ValueError("conditional argument value must be a string or a list of strings")
    raise ValueError(f"argument must be a string or an object, got {type(raw).__name__}")


class VersionArguments(_Document):
    game: List[ArgumentTemplate] = Field(default_factory=list)
    jvm: List[ArgumentTemplate] = Field(default_factory=list)

    @field_validator("game", "jvm", mode="before")
    @classmethod
    def _tag_arguments(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("arguments must be a list")
        return [parse_argument(raw) for raw in value]

    @field_serializer("game", "jvm")
    def _untag_arguments(self, value: List[ArgumentTemplate]) -> List[Any]:
        return [
            arg.value if isinstance(arg, LiteralArgument)
            else arg.model_dump(mode="json", by_alias=True, exclude_none=True)
            for arg in value
        ]


# Downloads and libraries

class DownloadInfo(_Document):
    url: str
    sha1: Optional[str] = None
    size: Optional[int] = None
    path: Optional[str] = None


class VersionDownloads(_Document):
    client: Optional[DownloadInfo] = None
    server: Optional[DownloadInfo] = None


class VersionLibraryExtractor(_Document):
    exclude: List[str] = Field(default_factory=list)


class VersionLibraryDownloads(_Document):
    artifact: Optional[DownloadInfo] = None
    classifiers: Optional[Dict[str, DownloadInfo]] = None


class VersionLibrary(_Document):
    name: str
    downloads: VersionLibraryDownloads = Field(default_factory=VersionLibraryDownloads)
    rules: Optional[List[Rule]] = None
    extract: Optional[VersionLibraryExtractor] = None
    natives: Optional[Dict[str, str]] = None

    @property
    def is_native(self) -> bool:
        """Modern native bundle: the classifier is part of the coordinate."""
        return ":natives-" in self.name

    def native_classifier(self, os_name: str, arch_bits: str) -> Optional[str]:
        """Classifier of the legacy natives artifact for the given OS, if any."""
        if not self.natives or os_name not in self.natives:
            return None
        return self.natives[os_name].replace("${arch}", arch_bits)

    @property
    def exclude_patterns(self) -> List[str]:
        return list(self.extract.exclude) if self.extract else []


# Assets

class AssetIndexRef(_Document):
    id: str
    sha1: str
    size: int
    total_size: Optional[int] = Field(default=None, alias="totalSize")
    url: str


class AssetObject(_Document):
    hash: str
    size: int


class AssetIndex(_Document):
    objects: Dict[str, AssetObject] = Field(default_factory=dict)
    virtual: bool = False
    map_to_resources: bool = False


class JavaVersion(_Document):
    component: Optional[str] = None
    major_version: int = Field(alias="majorVersion")


# Descriptor

class VersionMetadata(_Document):
    """Parsed version.json data."""

    id: str
    type: VersionType = VersionType.RELEASE
    time: Optional[datetime] = None
    release_time: Optional[datetime] = Field(default=None, alias="releaseTime")
    minimum_launcher_version: Optional[int] = Field(default=None, alias="minimumLauncherVersion")
    downloads: Optional[VersionDownloads] = None
    asset_index: Optional[AssetIndexRef] = Field(default=None, alias="assetIndex")
    assets: Optional[str] = None
    arguments: Optional[VersionArguments] = None
    minecraft_arguments: Optional[str] = Field(default=None, alias="minecraftArguments")
    libraries: List[VersionLibrary] = Field(default_factory=list)
    main_class: str = Field(alias="mainClass")
    java_version: Optional[JavaVersion] = Field(default=None, alias="javaVersion")

    @property
    def assets_id(self) -> str:
        if self.asset_index is not None:
            return self.asset_index.id
        return self.assets or "legacy"

    @property
    def client(self) -> Optional[DownloadInfo]:
        return self.downloads.client if self.downloads else None

    @property
    def uses_legacy_arguments(self) -> bool:
        return self.arguments is None and self.minecraft_arguments is not None
