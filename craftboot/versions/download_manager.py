"""Download manager for the version jar, libraries, natives and assets."""

import asyncio
import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

import aiofiles
import aiohttp
from pydantic import ValidationError

from ..config import LauncherConfig
from ..core.directory import GameDirectory
from ..errors import DescriptorCorrupt, DownloadFailed, ExtractionFailed, LauncherError, VerificationError
from ..utils.async_http import AsyncHTTPClient
from .manager import dump_metadata
from .models import AssetIndex, AssetObject, DownloadInfo, VersionLibrary, VersionMetadata
from .rules import Environment, evaluate
from .verifier import is_valid, verify

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], Awaitable[None]]


@dataclass
class AcquisitionReport:
    downloaded_jar: bool = False
    downloaded_asset_index: bool = False
    downloaded_libraries: int = 0
    skipped_libraries: int = 0
    total_libraries: int = 0
    downloaded_assets: int = 0
    skipped_assets: int = 0
    failed_assets: int = 0
    asset_batches: List[int] = field(default_factory=list)

    @property
    def downloads(self) -> int:
        """Number of artifacts fetched from the network."""
        return (int(self.downloaded_jar) + int(self.downloaded_asset_index)
                + self.downloaded_libraries + self.downloaded_assets)


def extract_natives(archive_path: Path, natives_dir: Path, exclude: Iterable[str] = ()) -> int:
    """Copy the native files of a jar into the natives directory.

    Directories, META-INF entries and entries starting with an excluded prefix
    are skipped. Returns the number of extracted files.
    """
    exclude = tuple(exclude)
    natives_dir.mkdir(parents=True, exist_ok=True)
    root = natives_dir.resolve()
    count = 0
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                name = info.filename
                if info.is_dir() or name.startswith("META-INF/"):
                    continue
                if any(name.startswith(pattern) for pattern in exclude):
                    logger.debug("Excluding %s from extraction", name)
                    continue

                target = (natives_dir / name).resolve()
                if root not in target.parents:
                    raise ExtractionFailed(f"Refusing to extract {name} outside of {natives_dir}")

                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                count += 1
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionFailed(f"Failed to extract natives from {archive_path}: {e}") from e

    logger.debug("Extracted %d native files from %s", count, archive_path.name)
    return count


class DownloadManager:
    def __init__(self, config: Optional[LauncherConfig] = None, env: Optional[Environment] = None,
                 http: Optional[AsyncHTTPClient] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.config = config or LauncherConfig()
        self.directory = GameDirectory(self.config.root_dir)
        self.env = env or Environment.current()
        self.http = http or AsyncHTTPClient()
        self.progress_callback = progress_callback

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.http.close()

    async def _fetch_bytes(self, url: str) -> bytes:
        return await self.http.get_bytes(url)

    async def _progress(self, name: str, current: int, total: int):
        if self.progress_callback:
            await self.progress_callback(name, current, total)

    async def download_file(self, url: str, dest: Path, expected_sha1: Optional[str] = None,
                            expected_size: Optional[int] = None, name: str = ""):
        """Download a file, verify it in memory, then write it to dest."""
        name = name or dest.name
        try:
            data = await self._fetch_bytes(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadFailed(f"Failed to download {name} from {url}: {e}") from e

        try:
            verify(data, expected_sha1, expected_size, name)
        except VerificationError as e:
            logger.warning("Verification failed for %s: %s", name, e)
            raise

        dest.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(dest, 'wb') as f:
            await f.write(data)

    async def ensure_file(self, download: DownloadInfo, dest: Path, name: str = "") -> bool:
        """Download unless dest already holds the expected content.

        Returns whether a download happened.
        """
        if await is_valid(dest, download.sha1, download.size):
            logger.debug("%s already exists and is valid", name or dest.name)
            return False
        logger.debug("Downloading %s", name or dest.name)
        await self.download_file(download.url, dest, download.sha1, download.size, name)
        return True

    async def download_version_jar(self, metadata: VersionMetadata) -> bool:
        """Download version JAR."""
        json_path = self.directory.version_json_path(metadata.id)
        if not json_path.is_file():
            json_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(json_path, 'w', encoding='utf-8') as f:
                await f.write(dump_metadata(metadata))

        client = metadata.client
        if client is None:
            raise DescriptorCorrupt(f"Version descriptor for {metadata.id} has no client download")

        jar_path = self.directory.version_jar_path(metadata.id)
        downloaded = await self.ensure_file(client, jar_path, f"{metadata.id}.jar")
        if downloaded:
            logger.info("Downloaded game JAR for %s", metadata.id)
        else:
            logger.info("Game JAR for %s already exists and is valid", metadata.id)
        return downloaded

    async def download_libraries(self, metadata: VersionMetadata,
                                 report: Optional[AcquisitionReport] = None) -> AcquisitionReport:
        """Download all libraries allowed on this platform and extract their natives."""
        report = report or AcquisitionReport()
        natives_dir = self.directory.natives_dir(metadata.id)

        logger.info("Downloading libraries for %s", metadata.id)
        for index, library in enumerate(metadata.libraries):
            await self._progress("libraries", index, len(metadata.libraries))
            if not evaluate(library.rules, self.env):
                logger.debug("Skipping library %s (platform rules)", library.name)
                report.skipped_libraries += 1
                continue

            report.total_libraries += 1
            try:
                report.downloaded_libraries += await self._download_library(library, natives_dir)
            except LauncherError:
                logger.error("Library %s could not be installed", library.name)
                raise
            except OSError as e:
                raise DownloadFailed(f"Failed to install library {library.name}: {e}") from e

        logger.info(
            "Libraries processed: %d downloaded, %d skipped, %d total",
            report.downloaded_libraries, report.skipped_libraries, report.total_libraries,
        )
        return report

    async def _download_library(self, library: VersionLibrary, natives_dir: Path) -> int:
        # Natives are extracted on every run so an interrupted extraction gets repaired
        downloaded = 0
        artifact = library.downloads.artifact

        if artifact is not None:
            path = self.directory.library_path(library.name)
            fetched = await self.ensure_file(artifact, path, library.name)
            downloaded += int(fetched)
            if library.is_native:
                await self._extract(path, natives_dir, library)

        classifier = library.native_classifier(self.env.os_name, self.env.arch_bits)
        if classifier and library.downloads.classifiers:
            native = library.downloads.classifiers.get(classifier)
            if native is None:
                logger.warning("Library %s declares natives %s but no download for it", library.name, classifier)
            else:
                path = self.directory.library_path(f"{library.name}:{classifier}")
                fetched = await self.ensure_file(native, path, f"{library.name}:{classifier}")
                downloaded += int(fetched)
                await self._extract(path, natives_dir, library)

        return downloaded

    async def _extract(self, archive: Path, natives_dir: Path, library: VersionLibrary):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, extract_natives, archive, natives_dir, library.exclude_patterns)

    async def download_asset_index(self, metadata: VersionMetadata,
                                   report: Optional[AcquisitionReport] = None) -> Optional[AssetIndex]:
        """Download asset index JSON."""
        ref = metadata.asset_index
        if ref is None:
            logger.info("Version %s declares no asset index", metadata.id)
            return None

        dest = self.directory.asset_index_path(ref.id)
        downloaded = await self.ensure_file(
            DownloadInfo(url=ref.url, sha1=ref.sha1, size=ref.size), dest, f"asset index {ref.id}",
        )
        if report is not None:
            report.downloaded_asset_index = downloaded

        async with aiofiles.open(dest, 'rb') as f:
            raw = await f.read()
        try:
            return AssetIndex.model_validate_json(raw)
        except ValidationError as e:
            raise DescriptorCorrupt(f"Asset index {ref.id} is corrupt: {e}") from e

    async def _download_asset(self, name: str, asset: AssetObject) -> bool:
        dest = self.directory.asset_path(asset.hash)
        if await is_valid(dest, asset.hash, asset.size):
            return False
        url = f"{self.config.resources_url}/{asset.hash[:2]}/{asset.hash}"
        await self.download_file(url, dest, asset.hash, asset.size, name)
        return True

    async def download_assets(self, metadata: VersionMetadata,
                              report: Optional[AcquisitionReport] = None) -> AcquisitionReport:
        """Download all assets from index, a batch at a time."""
        report = report or AcquisitionReport()
        asset_index = await self.download_asset_index(metadata, report)
        if asset_index is None:
            return report

        # Identical content shares one file in the object store
        unique: Dict[str, tuple] = {}
        for name, asset in asset_index.objects.items():
            unique.setdefault(asset.hash, (name, asset))
        objects = list(unique.values())
        total = len(objects)
        batch_size = self.config.asset_batch_size
        logger.info("Processing %d assets in batches of %d", total, batch_size)

        for start in range(0, total, batch_size):
            batch = objects[start:start + batch_size]
            report.asset_batches.append(len(batch))
            results = await asyncio.gather(
                *(self._download_asset(name, asset) for name, asset in batch),
                return_exceptions=True,
            )
            for (name, _), result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning("Asset download failed for %s: %s", name, result)
                    report.failed_assets += 1
                elif result:
                    report.downloaded_assets += 1
                else:
                    report.skipped_assets += 1

            processed = start + len(batch)
            logger.debug("Asset progress: %d/%d processed", processed, total)
            await self._progress("assets", processed, total)

        logger.info(
            "Assets processed: %d downloaded, %d skipped, %d failed, %d total",
            report.downloaded_assets, report.skipped_assets, report.failed_assets, total,
        )
        return report

    async def install(self, metadata: VersionMetadata) -> AcquisitionReport:
        """Make every artifact of a version available: jar, then libraries, then assets."""
        report = AcquisitionReport()
        self.directory.ensure_version_dir(metadata.id)
        report.downloaded_jar = await self.download_version_jar(metadata)
        await self.download_libraries(metadata, report)
        await self.download_assets(metadata, report)
        return report
