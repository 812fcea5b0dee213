"""Tests for version document models."""

import json

import pytest
from pydantic import ValidationError

from craftboot.versions.manager import dump_metadata
from craftboot.versions.models import (
    ConditionalMultiple,
    ConditionalSingle,
    LiteralArgument,
    RuleAction,
    VersionLibrary,
    VersionManifest,
    VersionMetadata,
    VersionType,
    parse_argument,
)

MANIFEST = {
    "latest": {"release": "1.21.1", "snapshot": "24w33a"},
    "versions": [
        {
            "id": "24w33a", "type": "snapshot", "url": "https://example.invalid/24w33a.json",
            "time": "2024-08-15T12:00:00+00:00", "releaseTime": "2024-08-15T12:00:00+00:00",
            "sha1": "a" * 40, "complianceLevel": 1,
        },
        {
            "id": "1.21.1", "type": "release", "url": "https://example.invalid/1.21.1.json",
            "time": "2024-08-08T12:00:00+00:00", "releaseTime": "2024-08-08T12:00:00+00:00",
            "sha1": "b" * 40, "complianceLevel": 1,
        },
    ],
}


def test_manifest_aliases():
    manifest = VersionManifest.model_validate(MANIFEST)
    assert manifest.latest.snapshot == "24w33a"
    info = manifest.find("1.21.1")
    assert info.type is VersionType.RELEASE
    assert info.release_time.year == 2024
    assert info.compliance_level == 1
    assert manifest.find("0.0.1") is None


def test_arguments_are_tagged(metadata):
    game = metadata.arguments.game
    assert isinstance(game[0], LiteralArgument)
    assert game[0].value == "--username"
    demo = next(a for a in game if isinstance(a, ConditionalSingle))
    assert demo.value == "--demo"
    resolution = next(a for a in game if isinstance(a, ConditionalMultiple))
    assert resolution.value[0] == "--width"
    assert resolution.rules[0].action is RuleAction.ALLOW


def test_parse_argument_rejects_bad_values():
    with pytest.raises(ValueError):
        parse_argument(42)
    with pytest.raises(ValueError):
        parse_argument({"rules": [], "value": 3})


def test_bad_argument_fails_descriptor_validation(descriptor):
    descriptor["arguments"]["game"].append(7)
    with pytest.raises(ValidationError):
        VersionMetadata.model_validate(descriptor)


def test_library_natives():
    library = VersionLibrary.model_validate({
        "name": "org.lwjgl.lwjgl:lwjgl-platform:2.9.4",
        "natives": {"linux": "natives-linux", "windows": "natives-windows-${arch}"},
        "extract": {"exclude": ["META-INF/"]},
    })
    assert not library.is_native
    assert library.native_classifier("windows", "64") == "natives-windows-64"
    assert library.native_classifier("linux", "64") == "natives-linux"
    assert library.native_classifier("osx", "64") is None
    assert library.exclude_patterns == ["META-INF/"]
    assert VersionLibrary(name="org.lwjgl:lwjgl:3.3.3:natives-linux").is_native


def test_legacy_descriptor():
    metadata = VersionMetadata.model_validate({
        "id": "1.7.10",
        "mainClass": "net.minecraft.client.main.Main",
        "minecraftArguments": "--username ${auth_player_name}",
        "assets": "1.7.10",
    })
    assert metadata.uses_legacy_arguments
    assert metadata.assets_id == "1.7.10"
    assert metadata.client is None


def test_dump_keeps_document_shape(descriptor, metadata):
    dumped = json.loads(dump_metadata(metadata))
    assert dumped["mainClass"] == descriptor["mainClass"]
    assert dumped["arguments"]["game"][:2] == ["--username", "${auth_player_name}"]
    assert dumped["arguments"]["jvm"][0]["value"] == ["-XstartOnFirstThread"]
    assert VersionMetadata.model_validate(dumped) == metadata
