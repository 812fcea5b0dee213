"""Offline authentication for Minecraft."""

import hashlib
import re
import uuid

from ..errors import AuthenticationError
from .models import Identity

_USERNAME = re.compile(r"^[A-Za-z0-9_]{1,16}$")

# Placeholder token the game accepts when playing offline
OFFLINE_ACCESS_TOKEN = "0"


def offline_uuid(username: str) -> str:
    """UUID the vanilla server derives for an offline player name."""
    digest = bytearray(hashlib.md5(f"OfflinePlayer:{username}".encode("utf-8")).digest())
    digest[6] = (digest[6] & 0x0f) | 0x30
    digest[8] = (digest[8] & 0x3f) | 0x80
    return uuid.UUID(bytes=bytes(digest)).hex


class OfflineAuthenticator:
    """Offline mode authenticator with username only."""

    @staticmethod
    async def authenticate(username: str) -> Identity:
        """Authenticate offline with given username."""
        if not username or not _USERNAME.match(username):
            raise AuthenticationError(
                f"Invalid username for offline mode: {username!r}",
                hint="use 1 to 16 letters, digits or underscores",
            )

        return Identity(
            name=username,
            id=offline_uuid(username),
            access_token=OFFLINE_ACCESS_TOKEN,
        )
