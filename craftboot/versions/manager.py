"""Version manifest and metadata manager."""

import asyncio
import json
import logging
from typing import Iterable, List, Optional

import aiofiles
import aiohttp
from pydantic import ValidationError

from .. import LAUNCHER_FORMAT_VERSION
from ..config import LauncherConfig
from ..core.directory import GameDirectory
from ..errors import CatalogUnavailable, DescriptorCorrupt, DownloadFailed, VersionNotFound
from ..utils.async_http import AsyncHTTPClient
from .models import VersionInfo, VersionManifest, VersionMetadata, VersionType
from .verifier import sha1_of

logger = logging.getLogger(__name__)

SORT_ORDERS = ("newest-first", "oldest-first", "alphabetical")


class VersionManager:
    def __init__(self, config: Optional[LauncherConfig] = None, http: Optional[AsyncHTTPClient] = None):
        self.config = config or LauncherConfig()
        self.directory = GameDirectory(self.config.root_dir)
        self.http = http or AsyncHTTPClient()
        self._manifest: Optional[VersionManifest] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.http.close()

    async def _fetch_bytes(self, url: str) -> bytes:
        return await self.http.get_bytes(url)

    async def fetch_manifest(self, refresh: bool = False) -> VersionManifest:
        """Fetch the launcher version manifest."""
        if self._manifest is not None and not refresh:
            return self._manifest

        url = self.config.manifest_url
        logger.info("Fetching version manifest from %s", url)
        try:
            raw = await self._fetch_bytes(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CatalogUnavailable(f"Failed to fetch version manifest from {url}: {e}") from e
        try:
            manifest = VersionManifest.model_validate_json(raw)
        except ValidationError as e:
            raise CatalogUnavailable(f"Failed to parse version manifest from {url}: {e}") from e

        logger.info("Fetched version manifest with %d versions", len(manifest.versions))
        self._manifest = manifest
        return manifest

    async def get_version_info(self, version_id: str) -> VersionInfo:
        """Get the manifest entry for a specific version."""
        manifest = await self.fetch_manifest()
        version = manifest.find(version_id)
        if version is None:
            raise VersionNotFound(version_id)
        return version

    async def resolve_alias(self, version: str) -> str:
        """Turn latest/latest-release/latest-snapshot into a concrete id."""
        if version in ("latest", "latest-release"):
            return (await self.fetch_manifest()).latest.release
        if version == "latest-snapshot":
            return (await self.fetch_manifest()).latest.snapshot
        return version

    async def fetch_version_metadata(self, version_id: str) -> VersionMetadata:
        """Fetch and parse version.json for a specific version."""
        version_info = await self.get_version_info(version_id)
        cache_path = self.directory.version_json_path(version_id)

        # Use cache if available and valid
        raw: Optional[bytes] = None
        fetched = False
        if version_info.sha1 and cache_path.is_file():
            async with aiofiles.open(cache_path, 'rb') as f:
                cached = await f.read()
            if sha1_of(cached) == version_info.sha1:
                logger.debug("Using cached descriptor %s", cache_path)
                raw = cached

        if raw is None:
            logger.info("Fetching version descriptor for %s from %s", version_id, version_info.url)
            try:
                raw = await self._fetch_bytes(version_info.url)
                fetched = True
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise DownloadFailed(f"Failed to fetch version descriptor for {version_id}: {e}") from e

        metadata = self.parse_metadata(raw, version_id)

        if fetched:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(cache_path, 'wb') as f:
                await f.write(raw)

        self._check_format_version(metadata)
        return metadata

    async def load_installed(self, version_id: str) -> VersionMetadata:
        """Parse the descriptor already stored in the version directory."""
        path = self.directory.version_json_path(version_id)
        if not path.is_file():
            raise VersionNotFound(version_id)
        async with aiofiles.open(path, 'rb') as f:
            raw = await f.read()
        return self.parse_metadata(raw, version_id)

    @staticmethod
    def parse_metadata(raw: bytes, version_id: str) -> VersionMetadata:
        try:
            return VersionMetadata.model_validate_json(raw)
        except ValidationError as e:
            raise DescriptorCorrupt(f"Version descriptor for {version_id} is corrupt: {e}") from e

    @staticmethod
    def _check_format_version(metadata: VersionMetadata):
        required = metadata.minimum_launcher_version
        if required is not None and required > LAUNCHER_FORMAT_VERSION:
            logger.warning(
                "This launcher (format %d) may be incompatible with %s (requires format %d)",
                LAUNCHER_FORMAT_VERSION, metadata.id, required,
            )

    async def list_versions(self, types: Optional[Iterable[VersionType]] = None,
                            pattern: Optional[str] = None, sort: str = "newest-first",
                            limit: Optional[int] = None) -> List[VersionInfo]:
        """Filter, sort and truncate the manifest's version list."""
        if sort not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {sort}")

        versions = list((await self.fetch_manifest()).versions)
        wanted = set(types or ())
        if wanted:
            versions = [v for v in versions if v.type in wanted]
        if pattern:
            needle = pattern.lower()
            versions = [v for v in versions if needle in v.id.lower()]

        if sort == "oldest-first":
            versions.reverse()
        elif sort == "alphabetical":
            versions.sort(key=lambda v: v.id)

        if limit is not None:
            versions = versions[:limit]
        return versions


def dump_metadata(metadata: VersionMetadata) -> str:
    """Serialize a descriptor back to its JSON document form."""
    return json.dumps(metadata.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2)
