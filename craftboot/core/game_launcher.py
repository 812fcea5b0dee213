"""Launch command resolution and game process launching."""

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from ..auth.models import Identity
from ..auth.offline import OFFLINE_ACCESS_TOKEN
from ..config import LauncherConfig
from ..errors import ClasspathEmpty, LaunchFailed, UnknownLegacyVariable
from ..instances.models import InstanceConfig
from ..versions.models import (
    ArgumentTemplate,
    ConditionalMultiple,
    ConditionalSingle,
    LiteralArgument,
    VersionMetadata,
)
from ..versions.rules import Environment, evaluate
from .directory import GameDirectory

logger = logging.getLogger(__name__)

USER_TYPE = "msa"
REDACTED = "<access token>"

# Tokens for features this launcher never enables
DISABLED_FEATURE_MARKERS = frozenset({"--demo"})

DEFAULT_HEAP = ("-Xms1G", "-Xmx2G")

GC_FLAGS = [
    "-XX:+UseG1GC",
    "-XX:+UnlockExperimentalVMOptions",
    "-XX:G1NewSizePercent=20",
    "-XX:G1ReservePercent=20",
    "-XX:MaxGCPauseMillis=50",
    "-XX:G1HeapRegionSize=32M",
]

# Placeholders some templates reference without the feature being used
FEATURE_PLACEHOLDERS = {
    "resolution_width": "854",
    "resolution_height": "480",
    "clientid": "",
    "auth_xuid": "",
    "quickPlayPath": "",
    "quickPlaySingleplayer": "",
    "quickPlayMultiplayer": "",
    "quickPlayRealms": "",
}

_VARIABLE = re.compile(r"\$\{([^}]+)\}")


def substitute(value: str, variables: Mapping[str, str]) -> str:
    """Replace known ${name} placeholders, leaving unknown ones untouched."""
    return _VARIABLE.sub(lambda m: variables.get(m.group(1), m.group(0)), value)


def substitute_strict(value: str, variables: Mapping[str, str]) -> str:
    """Replace ${name} placeholders, failing on names outside the table."""
    def replace(match):
        name = match.group(1)
        if name not in variables:
            raise UnknownLegacyVariable(name)
        return variables[name]
    return _VARIABLE.sub(replace, value)


def expand_templates(templates: Iterable[ArgumentTemplate], env: Environment) -> Iterator[str]:
    """Yield the raw tokens of every template allowed in env."""
    for template in templates:
        if isinstance(template, LiteralArgument):
            yield template.value
        elif isinstance(template, ConditionalSingle):
            if evaluate(template.rules, env):
                yield template.value
        elif isinstance(template, ConditionalMultiple):
            if evaluate(template.rules, env):
                yield from template.value
        else:
            raise TypeError(f"Unsupported argument template: {template!r}")


@dataclass
class LaunchCommand:
    command: List[str]
    cwd: Path
    env: Dict[str, str] = field(default_factory=lambda: os.environ.copy())

    def redacted(self, identity: Identity) -> List[str]:
        """The command with the access token masked, safe for logs.

        The value after --accessToken is always masked. Elsewhere the token is
        only replaced when it is a real one, not the offline placeholder.
        """
        token = identity.access_token
        secret = bool(token) and token != OFFLINE_ACCESS_TOKEN
        shown = []
        for index, arg in enumerate(self.command):
            if index and self.command[index - 1] == "--accessToken":
                shown.append(REDACTED)
            elif secret and token in arg:
                shown.append(arg.replace(token, REDACTED))
            else:
                shown.append(arg)
        return shown


class LaunchResolver:
    """Turns a version descriptor into a concrete java invocation."""

    def __init__(self, config: Optional[LauncherConfig] = None, env: Optional[Environment] = None):
        self.config = config or LauncherConfig()
        self.directory = GameDirectory(self.config.root_dir)
        self.env = env or Environment.current()

    def game_directory(self, instance: Optional[InstanceConfig] = None) -> Path:
        if instance is None:
            return self.directory.base_path
        if instance.settings.game_directory is not None:
            return Path(instance.settings.game_directory)
        return self.directory.instance_dir(instance.name)

    def build_classpath(self, metadata: VersionMetadata) -> List[str]:
        """Version jar first, then every usable non-native library jar."""
        classpath = []

        game_jar = self.directory.version_jar_path(metadata.id)
        if game_jar.exists():
            classpath.append(str(game_jar))
        else:
            logger.error("Main game JAR not found: %s", game_jar)

        for library in metadata.libraries:
            if not evaluate(library.rules, self.env):
                continue
            if library.is_native:
                logger.debug("Native library %s is not added to the classpath", library.name)
                continue
            if library.downloads.artifact is None:
                continue
            path = self.directory.library_path(library.name)
            if path.exists():
                classpath.append(str(path))
            else:
                logger.warning("Library %s (expected at %s) not found, skipping classpath addition",
                               library.name, path)

        if not classpath:
            raise ClasspathEmpty(metadata.id)
        return classpath

    def variables(self, metadata: VersionMetadata, instance: Optional[InstanceConfig] = None,
                  classpath: Optional[List[str]] = None) -> Dict[str, str]:
        """Substitution table without any identity values."""
        assets_root = str(self.directory.assets_dir)
        table = dict(FEATURE_PLACEHOLDERS)
        table.update({
            "game_directory": str(self.game_directory(instance)),
            "assets_root": assets_root,
            "game_assets": assets_root,
            "assets_index_name": metadata.assets_id,
            "version_name": metadata.id,
            "version_type": metadata.type.value.lower(),
            "launcher_name": self.config.launcher_name,
            "launcher_version": self.config.launcher_version,
            "natives_directory": str(self.directory.natives_dir(metadata.id)),
            "library_directory": str(self.directory.libraries_dir),
            "classpath_separator": os.pathsep,
            "classpath": os.pathsep.join(classpath or []),
        })
        return table

    @staticmethod
    def identity_variables(identity: Identity) -> Dict[str, str]:
        return {
            "auth_player_name": identity.name,
            "auth_uuid": identity.id,
            "auth_access_token": identity.access_token,
            "auth_session": f"token:{identity.access_token}:{identity.id}",
            "user_type": USER_TYPE,
            "user_properties": "{}",
        }

    def build_jvm_args(self, metadata: VersionMetadata, variables: Mapping[str, str],
                       instance: Optional[InstanceConfig] = None) -> List[str]:
        args = []

        memory = instance.settings.memory_mb if instance else None
        if memory:
            args.extend([f"-Xms{memory // 2}M", f"-Xmx{memory}M"])
        else:
            args.extend(DEFAULT_HEAP)
        args.extend(GC_FLAGS)

        if instance:
            args.extend(instance.settings.java_args)

        args.extend([
            f"-Dminecraft.launcher.brand={self.config.launcher_name}",
            f"-Dminecraft.launcher.version={self.config.launcher_version}",
        ])

        templates = metadata.arguments.jvm if metadata.arguments else []
        if templates:
            args.extend(substitute(token, variables) for token in expand_templates(templates, self.env))
        else:
            # Legacy descriptors carry no JVM templates
            args.extend([
                f"-Djava.library.path={variables['natives_directory']}",
                "-cp", variables["classpath"],
            ])
        return args

    def build_game_args(self, metadata: VersionMetadata, variables: Mapping[str, str],
                        identity: Identity, instance: Optional[InstanceConfig] = None) -> List[str]:
        table = dict(variables)
        table.update(self.identity_variables(identity))

        if metadata.arguments is not None and metadata.arguments.game:
            tokens = [substitute(token, table) for token in expand_templates(metadata.arguments.game, self.env)]
            args = [token for token in tokens if token not in DISABLED_FEATURE_MARKERS]
        elif metadata.minecraft_arguments is not None:
            args = self.parse_legacy_arguments(metadata.minecraft_arguments, table)
            args.extend(self.essential_arguments(identity, table["game_directory"]))
        else:
            args = []

        if instance:
            args.extend(instance.settings.game_args)
        return args

    @staticmethod
    def parse_legacy_arguments(arguments: str, variables: Mapping[str, str]) -> List[str]:
        args = []
        for part in arguments.split():
            resolved = substitute_strict(part, variables)
            if resolved not in DISABLED_FEATURE_MARKERS:
                args.append(resolved)
        return args

    @staticmethod
    def essential_arguments(identity: Identity, game_directory: str) -> List[str]:
        """Arguments legacy descriptors may omit but the game needs."""
        return [
            "--username", identity.name,
            "--uuid", identity.id,
            "--accessToken", identity.access_token,
            "--userType", USER_TYPE,
            "--gameDir", game_directory,
        ]

    def resolve(self, metadata: VersionMetadata, identity: Identity, java_path: Path,
                instance: Optional[InstanceConfig] = None) -> LaunchCommand:
        """Prepare launch command."""
        classpath = self.build_classpath(metadata)
        variables = self.variables(metadata, instance, classpath)

        jvm_args = self.build_jvm_args(metadata, variables, instance)
        logger.debug("JVM arguments: %s", jvm_args)
        game_args = self.build_game_args(metadata, variables, identity, instance)

        command = [str(java_path), *jvm_args, metadata.main_class, *game_args]
        return LaunchCommand(command=command, cwd=self.game_directory(instance))


class GameLauncher:
    """Spawns the resolved command and waits for the game to exit."""

    def __init__(self, resolver: LaunchResolver):
        self.resolver = resolver

    def launch(self, launch: LaunchCommand, identity: Optional[Identity] = None) -> int:
        """Launch the game process."""
        launch.cwd.mkdir(parents=True, exist_ok=True)
        shown = launch.redacted(identity) if identity else launch.command
        logger.info("Starting Minecraft process in %s", launch.cwd)
        logger.debug("Java command: %s", " ".join(shown))

        try:
            process = subprocess.Popen(launch.command, cwd=launch.cwd, env=launch.env)
        except OSError as e:
            raise LaunchFailed(f"Failed to start Minecraft process: {e}",
                               hint="check the Java path with 'java list'") from e

        logger.info("Minecraft process started with PID %d", process.pid)
        code = process.wait()
        if code != 0:
            raise LaunchFailed(f"Minecraft exited with code {code}")
        logger.info("Minecraft exited successfully")
        return code

    def run(self, metadata: VersionMetadata, identity: Identity, java_path: Path,
            instance: Optional[InstanceConfig] = None) -> int:
        return self.launch(self.resolver.resolve(metadata, identity, java_path, instance), identity)
