"""Tests for launch command resolution and process launching."""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from craftboot.auth.models import Identity
from craftboot.core.game_launcher import GameLauncher, LaunchCommand, LaunchResolver, substitute
from craftboot.errors import ClasspathEmpty, LaunchFailed, UnknownLegacyVariable
from craftboot.instances.models import InstanceConfig, InstanceSettings
from craftboot.versions.models import VersionMetadata
from craftboot.versions.rules import Environment

JAVA = Path("/usr/lib/jvm/java-21/bin/java")

LEGACY_ARGUMENTS = (
    "--username ${auth_player_name} --version ${version_name} --gameDir ${game_directory} "
    "--assetsDir ${assets_root} --assetIndex ${assets_index_name} --uuid ${auth_uuid} "
    "--accessToken ${auth_access_token} --userType ${user_type}"
)


@pytest.fixture
def identity():
    return Identity(name="Steve", id="069a79f444e94726a5befca90e38aaf5", access_token="secret-token")


@pytest.fixture
def resolver(config, linux):
    return LaunchResolver(config, env=linux)


@pytest.fixture
def installed(resolver, metadata):
    """Lay out the files of the sample descriptor as if prepare had run."""
    directory = resolver.directory
    paths = [
        directory.version_jar_path(metadata.id),
        directory.library_path("com.mojang:brigadier:1.2.9"),
        directory.library_path("org.lwjgl:lwjgl:3.3.3:natives-linux"),
    ]
    for path in paths:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"jar")
    return metadata


def legacy(metadata: VersionMetadata) -> VersionMetadata:
    document = metadata.model_dump(by_alias=True, exclude_none=True)
    document.pop("arguments")
    document["minecraftArguments"] = LEGACY_ARGUMENTS
    return VersionMetadata.model_validate(document)


def test_native_libraries_never_on_classpath(resolver, installed):
    classpath = resolver.build_classpath(installed)
    assert classpath == [
        str(resolver.directory.version_jar_path("1.21.1")),
        str(resolver.directory.library_path("com.mojang:brigadier:1.2.9")),
    ]
    assert not any("natives" in entry for entry in classpath)


def test_missing_library_is_left_out(resolver, installed):
    resolver.directory.library_path("com.mojang:brigadier:1.2.9").unlink()
    assert resolver.build_classpath(installed) == [str(resolver.directory.version_jar_path("1.21.1"))]


def test_empty_classpath(resolver, metadata):
    with pytest.raises(ClasspathEmpty) as exc_info:
        resolver.build_classpath(metadata)
    assert "prepare" in exc_info.value.hint


def test_resolve_modern(resolver, installed, identity):
    launch = resolver.resolve(installed, identity, JAVA)
    command = launch.command

    assert command[0] == str(JAVA)
    main_index = command.index("net.minecraft.client.main.Main")
    jvm, game = command[1:main_index], command[main_index + 1:]

    classpath = os.pathsep.join(resolver.build_classpath(installed))
    assert jvm[jvm.index("-cp") + 1] == classpath
    assert f"-Djava.library.path={resolver.directory.natives_dir('1.21.1')}" in jvm
    assert "-XstartOnFirstThread" not in jvm
    assert game[:4] == ["--username", "Steve", "--version", "1.21.1"]
    assert game[game.index("--accessToken") + 1] == "secret-token"
    assert game[game.index("--userType") + 1] == "msa"
    assert "--width" not in game
    assert launch.cwd == resolver.directory.base_path


def test_jvm_arguments_hold_no_identity(resolver, installed, identity):
    launch = resolver.resolve(installed, identity, JAVA)
    jvm = launch.command[:launch.command.index(installed.main_class)]
    for value in (identity.name, identity.id, identity.access_token):
        assert not any(value in arg for arg in jvm)


def test_demo_flag_is_always_dropped(config, installed, identity):
    env = Environment("linux", "x86_64", features={"is_demo_user": True, "has_custom_resolution": True})
    launch = LaunchResolver(config, env=env).resolve(installed, identity, JAVA)
    assert "--demo" not in launch.command
    game = launch.command[launch.command.index(installed.main_class) + 1:]
    assert game[game.index("--width") + 1] == "854"
    assert game[game.index("--height") + 1] == "480"


def test_legacy_matches_structured_plus_essentials(resolver, installed, identity):
    variables = resolver.variables(installed, classpath=resolver.build_classpath(installed))
    modern = resolver.build_game_args(installed, variables, identity)
    old = resolver.build_game_args(legacy(installed), variables, identity)

    appendix = resolver.essential_arguments(identity, str(resolver.directory.base_path))
    assert old == modern + appendix


def test_legacy_jvm_arguments(resolver, installed, identity):
    launch = resolver.resolve(legacy(installed), identity, JAVA)
    jvm = launch.command[:launch.command.index(installed.main_class)]
    assert jvm[-2:] == ["-cp", os.pathsep.join(resolver.build_classpath(installed))]
    assert jvm[-3] == f"-Djava.library.path={resolver.directory.natives_dir('1.21.1')}"


def test_unknown_legacy_variable(resolver):
    with pytest.raises(UnknownLegacyVariable) as exc_info:
        resolver.parse_legacy_arguments("--tweakClass ${tweak_class}", {})
    assert exc_info.value.name == "tweak_class"


def test_legacy_substitution_inside_tokens(resolver):
    args = resolver.parse_legacy_arguments("--session token:${auth_access_token} --demo", {"auth_access_token": "t"})
    assert args == ["--session", "token:t"]


def test_substitute_leaves_unknown_placeholders():
    assert substitute("${known}-${unknown}", {"known": "a"}) == "a-${unknown}"


def test_heap_follows_instance_memory(resolver, installed):
    variables = resolver.variables(installed, classpath=["x.jar"])
    instance = InstanceConfig(name="big", version="1.21.1", settings=InstanceSettings(memory_mb=4096))

    assert resolver.build_jvm_args(installed, variables)[:2] == ["-Xms1G", "-Xmx2G"]
    assert resolver.build_jvm_args(installed, variables, instance)[:2] == ["-Xms2048M", "-Xmx4096M"]


def test_instance_arguments(resolver, installed, identity):
    instance = InstanceConfig(
        name="modded", version="1.21.1",
        settings=InstanceSettings(java_args=["-Dfoo=bar"], game_args=["--fullscreen"]),
    )
    launch = resolver.resolve(installed, identity, JAVA, instance)
    assert "-Dfoo=bar" in launch.command
    assert launch.command[-1] == "--fullscreen"
    assert launch.cwd == resolver.directory.instance_dir("modded")


def test_game_directory(resolver, tmp_path):
    assert resolver.game_directory() == resolver.directory.base_path
    assert resolver.game_directory(InstanceConfig(name="a", version="1")) == resolver.directory.instance_dir("a")
    custom = InstanceConfig(name="a", version="1", settings=InstanceSettings(game_directory=tmp_path / "elsewhere"))
    assert resolver.game_directory(custom) == tmp_path / "elsewhere"


def test_redacted_command(identity):
    launch = LaunchCommand(
        command=["java", "--accessToken", "secret-token", "--session", "token:secret-token:abc"],
        cwd=Path("."),
    )
    assert launch.redacted(identity) == [
        "java", "--accessToken", "<access token>", "--session", "token:<access token>:abc",
    ]


def test_offline_placeholder_leaves_other_arguments_alone():
    offline = Identity(name="Steve", id="5627dd98e6be3c21b8a8e92344183641", access_token="0")
    launch = LaunchCommand(
        command=["java", "-Dlog.level=0", "--accessToken", "0", "--quickPlayPort", "0", "--xuid", "0"],
        cwd=Path("."),
    )
    assert launch.redacted(offline) == [
        "java", "-Dlog.level=0", "--accessToken", "<access token>", "--quickPlayPort", "0", "--xuid", "0",
    ]


def test_launch_waits_for_exit(resolver, tmp_path):
    launch = LaunchCommand(command=["java", "-version"], cwd=tmp_path / "game")
    process = MagicMock(pid=1234)
    process.wait.return_value = 0

    with patch("craftboot.core.game_launcher.subprocess.Popen", return_value=process) as popen:
        assert GameLauncher(resolver).launch(launch) == 0
    popen.assert_called_once_with(["java", "-version"], cwd=tmp_path / "game", env=launch.env)
    assert (tmp_path / "game").is_dir()


def test_launch_non_zero_exit(resolver, tmp_path):
    process = MagicMock(pid=1234)
    process.wait.return_value = 1

    with patch("craftboot.core.game_launcher.subprocess.Popen", return_value=process):
        with pytest.raises(LaunchFailed, match="code 1"):
            GameLauncher(resolver).launch(LaunchCommand(command=["java"], cwd=tmp_path))


def test_launch_spawn_failure(resolver, tmp_path):
    with patch("craftboot.core.game_launcher.subprocess.Popen", side_effect=FileNotFoundError("java")):
        with pytest.raises(LaunchFailed) as exc_info:
            GameLauncher(resolver).launch(LaunchCommand(command=["java"], cwd=tmp_path))
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)
