"""Instance configuration models."""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class InstanceSettings(BaseModel):
    java_args: List[str] = Field(default_factory=list)
    game_args: List[str] = Field(default_factory=list)
    memory_mb: Optional[int] = None
    game_directory: Optional[Path] = None


class InstanceConfig(BaseModel):
    name: str
    version: str
    description: Optional[str] = None
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used: Optional[datetime] = None
    settings: InstanceSettings = Field(default_factory=InstanceSettings)
