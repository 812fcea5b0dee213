"""On-disk instance registry."""

import asyncio
import logging
import re
import shutil
from datetime import datetime, timezone
from typing import Dict, List, Optional

import aiofiles
from pydantic import ValidationError

from ..core.directory import GameDirectory
from ..errors import InstanceError
from ..versions.manager import VersionManager
from .models import InstanceConfig

logger = logging.getLogger(__name__)

MAX_INSTANCE_NAME_LEN = 64
MAX_MEMORY_MB = 128 * 1024
INSTANCE_SUBDIRS = ("saves", "resourcepacks", "screenshots", "logs", "crash-reports")
DEFAULT_OPTIONS = "version:3343\nlang:en_us\n"

_NAME = re.compile(r"^[A-Za-z0-9_-]+$")

# Several commands may touch the same registry; all access goes through this lock.
_registry_lock = asyncio.Lock()


class InstanceManager:
    def __init__(self, directory: GameDirectory):
        self.directory = directory
        self.instances: Dict[str, InstanceConfig] = {}
        self.lock = _registry_lock

    def config_path(self, name: str):
        return self.directory.instance_dir(name) / "instance.json"

    async def load(self) -> "InstanceManager":
        """Load all instances from disk."""
        async with self.lock:
            self.instances.clear()
            instances_dir = self.directory.instances_dir
            if not instances_dir.is_dir():
                return self
            for entry in sorted(instances_dir.iterdir()):
                config_path = entry / "instance.json"
                if not config_path.is_file():
                    continue
                try:
                    async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                        config = InstanceConfig.model_validate_json(await f.read())
                except (OSError, ValidationError) as e:
                    logger.warning("Failed to load instance config at %s: %s", config_path, e)
                    continue
                self.instances[config.name] = config
        logger.info("Loaded %d instances", len(self.instances))
        return self

    async def _save(self, config: InstanceConfig):
        path = self.config_path(config.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(config.model_dump_json(indent=2))

    def get(self, name: str) -> InstanceConfig:
        config = self.instances.get(name)
        if config is None:
            raise InstanceError(
                f"Instance '{name}' does not exist",
                hint="use 'instance list' to see instances or 'instance create' to add one",
            )
        return config

    def list(self) -> List[InstanceConfig]:
        return sorted(self.instances.values(), key=lambda c: c.name)

    @staticmethod
    def validate_name(name: str):
        if not _NAME.match(name):
            raise InstanceError("Instance name can only contain letters, numbers, hyphens, and underscores")
        if len(name) > MAX_INSTANCE_NAME_LEN:
            raise InstanceError(
                f"Instance name is too long ({len(name)} characters). "
                f"Maximum allowed is {MAX_INSTANCE_NAME_LEN} characters."
            )

    async def create(self, name: str, version: str, versions: VersionManager,
                     description: Optional[str] = None) -> InstanceConfig:
        """Create a new instance after checking the version exists."""
        self.validate_name(name)
        resolved = await versions.resolve_alias(version)
        # Raises VersionNotFound with a hint towards the list command
        await versions.get_version_info(resolved)

        async with self.lock:
            if name in self.instances:
                raise InstanceError(f"Instance '{name}' already exists")
            config = InstanceConfig(name=name, version=resolved, description=description)
            await self._save(config)
            self.ensure_instance_directory(name)
            self.instances[name] = config

        logger.info("Created instance %s for Minecraft %s", name, resolved)
        return config

    async def delete(self, name: str):
        async with self.lock:
            self.get(name)
            instance_dir = self.directory.instance_dir(name)
            if instance_dir.exists():
                shutil.rmtree(instance_dir)
            del self.instances[name]
        logger.info("Deleted instance %s", name)

    async def set_memory(self, name: str, memory_mb: int) -> InstanceConfig:
        if memory_mb <= 0:
            raise InstanceError("Memory must be greater than 0 MB")
        if memory_mb > MAX_MEMORY_MB:
            raise InstanceError(
                f"Memory value too large ({memory_mb} MB). Maximum allowed is {MAX_MEMORY_MB} MB"
            )
        async with self.lock:
            config = self.get(name)
            config.settings.memory_mb = memory_mb
            await self._save(config)
        logger.info("Set memory for instance %s to %dMB", name, memory_mb)
        return config

    async def touch(self, name: str):
        """Update an instance's last used timestamp."""
        async with self.lock:
            config = self.get(name)
            config.last_used = datetime.now(timezone.utc)
            await self._save(config)

    def ensure_instance_directory(self, name: str):
        """Create the directories the game expects inside an instance."""
        instance_dir = self.directory.instance_dir(name)
        for subdir in INSTANCE_SUBDIRS:
            (instance_dir / subdir).mkdir(parents=True, exist_ok=True)
        options = instance_dir / "options.txt"
        if not options.exists():
            options.write_text(DEFAULT_OPTIONS, encoding="utf-8")
        return instance_dir
