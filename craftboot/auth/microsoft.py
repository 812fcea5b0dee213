"""Microsoft OAuth authentication for Minecraft."""

import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import aiohttp
import keyring
import msal
from keyring.errors import KeyringError, PasswordDeleteError

from ..errors import AuthenticationError
from ..utils.async_http import AsyncHTTPClient
from .models import Identity

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "craftboot"
KEYRING_USER = "microsoft_refresh_token"

XBOX_AUTH_URL = "https://user.auth.xboxlive.com/user/authenticate"
XSTS_AUTH_URL = "https://xsts.auth.xboxlive.com/xsts/authorize"
MINECRAFT_LOGIN_URL = "https://api.minecraftservices.com/authentication/login_with_xbox"
MINECRAFT_ENTITLEMENT_URL = "https://api.minecraftservices.com/entitlements/mcstore"
MINECRAFT_PROFILE_URL = "https://api.minecraftservices.com/minecraft/profile"


def owns_game(status: int, body: str) -> bool:
    """Interpret an entitlement response.

    Only an error status fails. Empty, unparsable or product-less bodies pass
    with a warning so that ownership ambiguity never blocks a launch.
    """
    if status >= 400:
        logger.error("Failed to verify game ownership (HTTP %d): %s", status, body)
        return False
    if not body.strip() or "items" not in body:
        logger.warning("No explicit entitlements found, assuming ownership is valid")
        return True
    try:
        items = json.loads(body).get("items") or []
        names = [item.get("name", "") for item in items]
    except (ValueError, AttributeError) as e:
        logger.warning("Couldn't parse entitlement data (%s), proceeding anyway", e)
        return True
    if not any("minecraft" in name for name in names):
        logger.warning("No Minecraft entitlement found, but proceeding anyway")
    return True


class MicrosoftAuthenticator:
    CLIENT_ID = "00000000402b5328"  # Official Minecraft Launcher client ID
    AUTHORITY = "https://login.microsoftonline.com/consumers/"
    SCOPES = ["XboxLive.signin"]

    def __init__(self):
        self._app: Optional[msal.PublicClientApplication] = None

    @property
    def app(self) -> msal.PublicClientApplication:
        # Created on first use, msal contacts the authority on construction
        if self._app is None:
            self._app = msal.PublicClientApplication(self.CLIENT_ID, authority=self.AUTHORITY)
        return self._app

    def get_stored_refresh_token(self) -> Optional[str]:
        """Retrieve stored refresh token from keyring."""
        try:
            return keyring.get_password(KEYRING_SERVICE, KEYRING_USER)
        except KeyringError as e:
            logger.warning("Keyring unavailable: %s", e)
            return None

    def store_refresh_token(self, token: str):
        """Store refresh token securely."""
        try:
            keyring.set_password(KEYRING_SERVICE, KEYRING_USER, token)
        except KeyringError as e:
            logger.warning("Could not store refresh token: %s", e)

    def clear(self) -> bool:
        """Forget the stored refresh token. Returns whether one was stored."""
        try:
            keyring.delete_password(KEYRING_SERVICE, KEYRING_USER)
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            logger.warning("Keyring unavailable: %s", e)
            return False
        return True

    async def initiate_device_code_flow(self) -> Dict[str, Any]:
        """Start device code OAuth flow using MSAL."""
        loop = asyncio.get_running_loop()
        flow = await loop.run_in_executor(None, self.app.initiate_device_flow, self.SCOPES)
        if "error" in flow:
            raise AuthenticationError(f"Device flow error: {flow.get('error_description', flow['error'])}")
        return flow

    async def poll_tokens(self, flow: Dict[str, Any]) -> Dict[str, Any]:
        """Poll for access token using MSAL."""
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.app.acquire_token_by_device_flow, flow)
        if "error" in result:
            raise AuthenticationError(result.get("error_description", "Microsoft authentication failed"))
        return result

    async def refresh(self, refresh_token: str) -> Optional[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, lambda: self.app.acquire_token_by_refresh_token(refresh_token, scopes=self.SCOPES)
        )
        if not result or "access_token" not in result:
            logger.info("Stored refresh token rejected, starting device code flow")
            return None
        return result

    async def authenticate_with_xbox_live(self, http: AsyncHTTPClient, access_token: str) -> Dict[str, Any]:
        """Get Xbox Live token."""
        data = {
            "Properties": {
                "AuthMethod": "RPS",
                "SiteName": "user.auth.xboxlive.com",
                "RpsTicket": f"d={access_token}"
            },
            "RelyingParty": "http://auth.xboxlive.com",
            "TokenType": "JWT"
        }
        return await http.post(XBOX_AUTH_URL, json_data=data)

    async def authenticate_with_xsts(self, http: AsyncHTTPClient, xbox_token: str) -> Dict[str, Any]:
        """Get XSTS token."""
        data = {
            "Properties": {
                "SandboxId": "RETAIL",
                "UserTokens": [xbox_token]
            },
            "RelyingParty": "rp://api.minecraftservices.com/",
            "TokenType": "JWT"
        }
        return await http.post(XSTS_AUTH_URL, json_data=data)

    async def authenticate_with_minecraft(self, http: AsyncHTTPClient, xsts_token: str, user_hash: str) -> str:
        """Get Minecraft access token."""
        data = {"identityToken": f"XBL3.0 x={user_hash};{xsts_token}"}
        return (await http.post(MINECRAFT_LOGIN_URL, json_data=data))["access_token"]

    async def verify_ownership(self, http: AsyncHTTPClient, minecraft_token: str):
        headers = {"Authorization": f"Bearer {minecraft_token}"}
        status, body = await http.get_text(MINECRAFT_ENTITLEMENT_URL, headers=headers)
        if not owns_game(status, body):
            raise AuthenticationError(f"Failed to verify game ownership (HTTP {status})")

    async def get_profile(self, http: AsyncHTTPClient, access_token: str) -> Dict[str, Any]:
        """Fetch Minecraft profile."""
        headers = {"Authorization": f"Bearer {access_token}"}
        return await http.get(MINECRAFT_PROFILE_URL, headers=headers)

    async def exchange(self, ms_access_token: str) -> Identity:
        """Trade a Microsoft token for a Minecraft identity."""
        async with AsyncHTTPClient() as http:
            xbox = await self.authenticate_with_xbox_live(http, ms_access_token)
            xsts = await self.authenticate_with_xsts(http, xbox["Token"])
            user_hash = self.extract_xbox_user_hash(xsts)
            mc_token = await self.authenticate_with_minecraft(http, xsts["Token"], user_hash)
            await self.verify_ownership(http, mc_token)
            profile = await self.get_profile(http, mc_token)
        return Identity(name=profile["name"], id=profile["id"], access_token=mc_token)

    async def authenticate_full_flow(self) -> Identity:
        """Complete authentication flow, returning the player's identity."""
        try:
            # Try silent auth with stored refresh token first
            ms_token_result = None
            refresh_token = self.get_stored_refresh_token()
            if refresh_token:
                ms_token_result = await self.refresh(refresh_token)

            if ms_token_result is None:
                flow = await self.initiate_device_code_flow()
                print(flow.get("message") or f"Go to {flow['verification_uri']} and enter code {flow['user_code']}")
                ms_token_result = await self.poll_tokens(flow)

            if "refresh_token" in ms_token_result:
                self.store_refresh_token(ms_token_result["refresh_token"])

            return await self.exchange(ms_token_result["access_token"])
        except aiohttp.ClientResponseError as e:
            raise AuthenticationError(f"Authentication failed: HTTP {e.status} from {e.request_info.url}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError) as e:
            raise AuthenticationError(f"Authentication failed: {e}") from e

    @staticmethod
    def extract_xbox_user_hash(xsts: Dict[str, Any]) -> str:
        """Extract user hash from an XSTS response, falling back to the JWT claims."""
        try:
            return xsts["DisplayClaims"]["xui"][0]["uhs"]
        except (KeyError, IndexError):
            pass
        payload = xsts["Token"].split(".")[1]
        # Fix padding
        payload += "=" * ((4 - len(payload) % 4) % 4)
        data = json.loads(base64.urlsafe_b64decode(payload))
        return data["DisplayClaims"]["xui"][0]["uhs"]
