"""Authentication module for Minecraft accounts."""

from .microsoft import MicrosoftAuthenticator
from .models import Identity
from .offline import OfflineAuthenticator

__all__ = ["Identity", "MicrosoftAuthenticator", "OfflineAuthenticator"]
