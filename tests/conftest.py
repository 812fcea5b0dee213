"""Shared fixtures for launcher tests."""

import hashlib
import io
import json
import zipfile

import aiohttp
import pytest

from craftboot.config import LauncherConfig
from craftboot.versions.models import VersionMetadata
from craftboot.versions.rules import Environment

BASE_URL = "https://example.invalid"


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def make_jar(files: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


class Blobs:
    """In-memory stand-in for the remote file hosts."""

    def __init__(self):
        self.data = {}
        self.requests = []

    def add(self, path: str, content: bytes) -> dict:
        url = f"{BASE_URL}/{path}"
        self.data[url] = content
        return {"url": url, "sha1": sha1(content), "size": len(content)}

    def fetch(self, url: str) -> bytes:
        self.requests.append(url)
        if url not in self.data:
            raise aiohttp.ClientError(f"404 Not Found: {url}")
        return self.data[url]


@pytest.fixture
def config(tmp_path):
    return LauncherConfig(
        root_dir=tmp_path / "minecraft",
        manifest_url=f"{BASE_URL}/manifest.json",
        resources_url=f"{BASE_URL}/resources",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def linux():
    return Environment(os_name="linux", arch="x86_64", os_version="6.1.0")


@pytest.fixture
def blobs():
    return Blobs()


@pytest.fixture
def descriptor(blobs):
    """A small modern descriptor whose files are all served by `blobs`."""
    client = blobs.add("client.jar", b"client jar bytes")
    lib = blobs.add("lib.jar", b"library bytes")
    native = blobs.add("native.jar", make_jar({
        "liblwjgl.so": b"native code",
        "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0",
    }))
    index_doc = json.dumps({"objects": {
        "minecraft/sounds/a.ogg": {"hash": sha1(b"asset a"), "size": 7},
        "minecraft/lang/en_us.json": {"hash": sha1(b"asset b"), "size": 7},
    }}).encode()
    blobs.add(f"resources/{sha1(b'asset a')[:2]}/{sha1(b'asset a')}", b"asset a")
    blobs.add(f"resources/{sha1(b'asset b')[:2]}/{sha1(b'asset b')}", b"asset b")
    index = blobs.add("indexes/17.json", index_doc)

    return {
        "id": "1.21.1",
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "minimumLauncherVersion": 21,
        "downloads": {"client": client},
        "assetIndex": {**index, "id": "17", "totalSize": 14},
        "assets": "17",
        "javaVersion": {"component": "java-runtime-delta", "majorVersion": 21},
        "libraries": [
            {"name": "com.mojang:brigadier:1.2.9", "downloads": {"artifact": lib}},
            {
                "name": "org.lwjgl:lwjgl:3.3.3:natives-linux",
                "downloads": {"artifact": native},
                "rules": [{"action": "allow", "os": {"name": "linux"}}],
            },
            {
                "name": "org.lwjgl:lwjgl:3.3.3:natives-windows",
                "downloads": {"artifact": native},
                "rules": [{"action": "allow", "os": {"name": "windows"}}],
            },
        ],
        "arguments": {
            "game": [
                "--username", "${auth_player_name}",
                "--version", "${version_name}",
                "--gameDir", "${game_directory}",
                "--assetsDir", "${assets_root}",
                "--assetIndex", "${assets_index_name}",
                "--uuid", "${auth_uuid}",
                "--accessToken", "${auth_access_token}",
                "--userType", "${user_type}",
                {"rules": [{"action": "allow", "features": {"is_demo_user": True}}], "value": "--demo"},
                {
                    "rules": [{"action": "allow", "features": {"has_custom_resolution": True}}],
                    "value": ["--width", "${resolution_width}", "--height", "${resolution_height}"],
                },
            ],
            "jvm": [
                {"rules": [{"action": "allow", "os": {"name": "osx"}}], "value": ["-XstartOnFirstThread"]},
                "-Djava.library.path=${natives_directory}",
                "-cp",
                "${classpath}",
            ],
        },
    }


@pytest.fixture
def metadata(descriptor):
    return VersionMetadata.model_validate(descriptor)
