"""Launcher configuration."""

import os
import platform
from pathlib import Path

from pydantic import BaseModel, Field


def default_root_dir() -> Path:
    """Platform-specific game directory used by the official launcher."""
    system = platform.system()
    if system == "Windows":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return base / ".minecraft"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "minecraft"
    return Path.home() / ".minecraft"


class LauncherConfig(BaseModel):
    root_dir: Path = Field(default_factory=default_root_dir)
    manifest_url: str = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"
    resources_url: str = "https://resources.download.minecraft.net"
    asset_batch_size: int = Field(default=50, ge=1)
    launcher_name: str = "craftboot"
    launcher_version: str = "0.3.0"
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "craftboot")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LauncherConfig":
        """Build the configuration, letting CRAFTBOOT_* variables override defaults."""
        values = {}
        root = os.environ.get("CRAFTBOOT_ROOT", "").strip()
        if root:
            values["root_dir"] = Path(root)
        log_level = os.environ.get("CRAFTBOOT_LOG_LEVEL", "").strip()
        if log_level:
            values["log_level"] = log_level
        manifest_url = os.environ.get("CRAFTBOOT_MANIFEST_URL", "").strip()
        if manifest_url:
            values["manifest_url"] = manifest_url
        batch_size = os.environ.get("CRAFTBOOT_ASSET_BATCH_SIZE", "").strip()
        if batch_size:
            values["asset_batch_size"] = int(batch_size)
        return cls(**values)
