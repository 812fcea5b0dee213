"""Command line interface."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .auth.microsoft import MicrosoftAuthenticator
from .auth.models import Identity
from .auth.offline import OfflineAuthenticator
from .config import LauncherConfig
from .core.directory import GameDirectory
from .core.game_launcher import GameLauncher, LaunchResolver
from .errors import LauncherError
from .instances.manager import InstanceManager
from .runtime.java_manager import JavaInstallation, JavaManager, required_java_version, select_java
from .utils.logger import setup_logging
from .versions.download_manager import AcquisitionReport, DownloadManager
from .versions.manager import SORT_ORDERS, VersionManager
from .versions.models import VersionMetadata, VersionType

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="craftboot", description="Minecraft version installer and launcher")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Console log level (default: INFO).")
    parser.add_argument("--root", help="Game directory (default: the platform's .minecraft).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List available versions.")
    list_parser.add_argument("--types", nargs="+", choices=[t.value for t in VersionType],
                             help="Only show these version types.")
    list_parser.add_argument("--release", action="store_true", help="Shorthand for --types release.")
    list_parser.add_argument("--snapshot", action="store_true", help="Shorthand for --types snapshot.")
    list_parser.add_argument("--filter", dest="pattern", help="Only show ids containing this text.")
    list_parser.add_argument("--sort", choices=SORT_ORDERS, default="newest-first")
    list_parser.add_argument("--limit", type=int, default=10,
                             help="Show at most this many (default: 10, 0 for all).")
    list_parser.add_argument("--all", action="store_true", help="Show every matching version.")
    list_parser.add_argument("--show-installed", action="store_true", help="Mark installed versions.")
    list_parser.set_defaults(func=cmd_list)

    prepare_parser = subparsers.add_parser("prepare", help="Download and verify everything a version needs.")
    prepare_parser.add_argument("version", help="Version id, or latest / latest-release / latest-snapshot.")
    prepare_parser.set_defaults(func=cmd_prepare)

    launch_parser = subparsers.add_parser("launch", help="Launch an instance.")
    launch_parser.add_argument("instance")
    launch_parser.add_argument("--offline", metavar="NAME", help="Play offline with this username.")
    launch_parser.add_argument("--java", metavar="PATH", help="Java executable to use.")
    launch_parser.add_argument("--skip-prepare", action="store_true",
                               help="Use the installed files without checking them.")
    launch_parser.set_defaults(func=cmd_launch)

    instance_parser = subparsers.add_parser("instance", help="Manage instances.")
    instance_sub = instance_parser.add_subparsers(dest="instance_command", required=True)
    instance_sub.add_parser("list", help="List instances.").set_defaults(func=cmd_instance_list)
    create_parser = instance_sub.add_parser("create", help="Create an instance.")
    create_parser.add_argument("name")
    create_parser.add_argument("version")
    create_parser.add_argument("--description")
    create_parser.set_defaults(func=cmd_instance_create)
    delete_parser = instance_sub.add_parser("delete", help="Delete an instance and its files.")
    delete_parser.add_argument("name")
    delete_parser.set_defaults(func=cmd_instance_delete)
    info_parser = instance_sub.add_parser("info", help="Show an instance.")
    info_parser.add_argument("name")
    info_parser.set_defaults(func=cmd_instance_info)
    memory_parser = instance_sub.add_parser("memory", help="Set an instance's memory in MB.")
    memory_parser.add_argument("name")
    memory_parser.add_argument("memory_mb", type=int)
    memory_parser.set_defaults(func=cmd_instance_memory)

    java_parser = subparsers.add_parser("java", help="Inspect Java runtimes.")
    java_sub = java_parser.add_subparsers(dest="java_command", required=True)
    java_sub.add_parser("list", help="List detected Java runtimes.").set_defaults(func=cmd_java_list)
    recommend_parser = java_sub.add_parser("recommend", help="Pick the Java runtime for a version.")
    recommend_parser.add_argument("version")
    recommend_parser.set_defaults(func=cmd_java_recommend)

    auth_parser = subparsers.add_parser("auth", help="Manage the stored Microsoft login.")
    auth_sub = auth_parser.add_subparsers(dest="auth_command", required=True)
    auth_sub.add_parser("status", help="Show whether a login is stored.").set_defaults(func=cmd_auth_status)
    auth_sub.add_parser("clear", help="Forget the stored login.").set_defaults(func=cmd_auth_clear)
    login_parser = auth_sub.add_parser("login", help="Sign in with a Microsoft account.")
    login_parser.add_argument("--force", action="store_true", help="Sign in again even if a login is stored.")
    login_parser.set_defaults(func=cmd_auth_login)

    return parser


def load_config(args: argparse.Namespace) -> LauncherConfig:
    config = LauncherConfig.from_env()
    overrides = {}
    if args.root:
        overrides["root_dir"] = Path(args.root).expanduser()
    if args.log_level:
        overrides["log_level"] = args.log_level
    return config.model_copy(update=overrides) if overrides else config


def print_report(version_id: str, report: AcquisitionReport):
    print(f"Prepared {version_id}")
    print(f"  game jar:  {'downloaded' if report.downloaded_jar else 'up to date'}")
    print(f"  libraries: {report.downloaded_libraries} downloaded, {report.skipped_libraries} skipped "
          f"by platform rules, {report.total_libraries} in use")
    print(f"  assets:    {report.downloaded_assets} downloaded, {report.skipped_assets} up to date, "
          f"{report.failed_assets} failed")


async def prepare_version(config: LauncherConfig, version: str) -> VersionMetadata:
    async with VersionManager(config) as versions:
        version_id = await versions.resolve_alias(version)
        metadata = await versions.fetch_version_metadata(version_id)
    async with DownloadManager(config) as downloads:
        report = await downloads.install(metadata)
    print_report(metadata.id, report)
    if report.failed_assets:
        log.warning("%d assets failed to download, run prepare again to retry", report.failed_assets)
    return metadata


async def cmd_list(args: argparse.Namespace, config: LauncherConfig) -> int:
    types = [VersionType(t) for t in args.types or ()]
    if args.release:
        types.append(VersionType.RELEASE)
    if args.snapshot:
        types.append(VersionType.SNAPSHOT)
    limit = None if args.all or args.limit <= 0 else args.limit
    async with VersionManager(config) as versions:
        found = await versions.list_versions(types or None, args.pattern, args.sort, limit)
    directory = GameDirectory(config.root_dir)
    for info in found:
        marker = ""
        if args.show_installed and directory.is_version_installed(info.id):
            marker = "  [installed]"
        print(f"{info.id:<24} {info.type.value:<10} {info.release_time:%Y-%m-%d}{marker}")
    if not found:
        print("No versions match.")
    return 0


async def cmd_prepare(args: argparse.Namespace, config: LauncherConfig) -> int:
    await prepare_version(config, args.version)
    return 0


async def get_identity(offline_name: Optional[str]) -> Identity:
    if offline_name:
        return await OfflineAuthenticator.authenticate(offline_name)
    return await MicrosoftAuthenticator().authenticate_full_flow()


def find_java(metadata: VersionMetadata, java_path: Optional[str]) -> Path:
    if java_path:
        return Path(java_path)
    installation = select_java(JavaManager().discover(), required_java_version(metadata))
    return installation.path


async def cmd_launch(args: argparse.Namespace, config: LauncherConfig) -> int:
    instances = await InstanceManager(GameDirectory(config.root_dir)).load()
    instance = instances.get(args.instance)

    if args.skip_prepare:
        async with VersionManager(config) as versions:
            metadata = await versions.load_installed(instance.version)
    else:
        metadata = await prepare_version(config, instance.version)

    java = find_java(metadata, args.java)
    identity = await get_identity(args.offline)
    log.info("Launching %s (Minecraft %s) as %s", instance.name, metadata.id, identity.name)

    instances.ensure_instance_directory(instance.name)
    await instances.touch(instance.name)
    launcher = GameLauncher(LaunchResolver(config))
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, launcher.run, metadata, identity, java, instance)


async def cmd_instance_list(args: argparse.Namespace, config: LauncherConfig) -> int:
    instances = await InstanceManager(GameDirectory(config.root_dir)).load()
    listed = instances.list()
    if not listed:
        print("No instances. Create one with 'instance create <name> <version>'.")
    for instance in listed:
        last_used = f"{instance.last_used:%Y-%m-%d %H:%M}" if instance.last_used else "never"
        print(f"{instance.name:<24} {instance.version:<16} last used: {last_used}")
    return 0


async def cmd_instance_create(args: argparse.Namespace, config: LauncherConfig) -> int:
    instances = await InstanceManager(GameDirectory(config.root_dir)).load()
    async with VersionManager(config) as versions:
        instance = await instances.create(args.name, args.version, versions, args.description)
    print(f"Created instance {instance.name} for Minecraft {instance.version}")
    return 0


async def cmd_instance_delete(args: argparse.Namespace, config: LauncherConfig) -> int:
    instances = await InstanceManager(GameDirectory(config.root_dir)).load()
    await instances.delete(args.name)
    print(f"Deleted instance {args.name}")
    return 0


async def cmd_instance_info(args: argparse.Namespace, config: LauncherConfig) -> int:
    directory = GameDirectory(config.root_dir)
    instances = await InstanceManager(directory).load()
    instance = instances.get(args.name)
    resolver = LaunchResolver(config)
    print(f"Name:        {instance.name}")
    print(f"Version:     {instance.version}")
    if instance.description:
        print(f"Description: {instance.description}")
    print(f"Created:     {instance.created:%Y-%m-%d %H:%M}")
    print(f"Last used:   {instance.last_used:%Y-%m-%d %H:%M}" if instance.last_used else "Last used:   never")
    memory = f"{instance.settings.memory_mb} MB" if instance.settings.memory_mb else "default"
    print(f"Memory:      {memory}")
    print(f"Directory:   {resolver.game_directory(instance)}")
    print(f"Installed:   {'yes' if directory.is_version_installed(instance.version) else 'no'}")
    return 0


async def cmd_instance_memory(args: argparse.Namespace, config: LauncherConfig) -> int:
    instances = await InstanceManager(GameDirectory(config.root_dir)).load()
    await instances.set_memory(args.name, args.memory_mb)
    print(f"Memory for {args.name} set to {args.memory_mb} MB")
    return 0


def print_installations(installations: List[JavaInstallation]):
    for installation in installations:
        print(f"Java {installation.major_version:<4} {installation.path}")


async def cmd_java_list(args: argparse.Namespace, config: LauncherConfig) -> int:
    installations = JavaManager().discover()
    if not installations:
        print("No Java runtimes found.")
        return 1
    print_installations(installations)
    return 0


async def cmd_java_recommend(args: argparse.Namespace, config: LauncherConfig) -> int:
    async with VersionManager(config) as versions:
        metadata = await versions.fetch_version_metadata(await versions.resolve_alias(args.version))
    required = required_java_version(metadata)
    installation = select_java(JavaManager().discover(), required)
    print(f"Minecraft {metadata.id} requires Java {required}")
    print_installations([installation])
    return 0


async def cmd_auth_status(args: argparse.Namespace, config: LauncherConfig) -> int:
    if MicrosoftAuthenticator().get_stored_refresh_token():
        print("A Microsoft login is stored.")
    else:
        print("No Microsoft login stored. Run 'auth login' to sign in.")
    return 0


async def cmd_auth_clear(args: argparse.Namespace, config: LauncherConfig) -> int:
    if MicrosoftAuthenticator().clear():
        print("Stored Microsoft login removed.")
    else:
        print("No Microsoft login was stored.")
    return 0


async def cmd_auth_login(args: argparse.Namespace, config: LauncherConfig) -> int:
    authenticator = MicrosoftAuthenticator()
    if args.force and authenticator.clear():
        log.info("Discarded the stored Microsoft login")
    identity = await authenticator.authenticate_full_flow()
    print(f"Signed in as {identity.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args)
    setup_logging(config.log_level, config.log_dir)

    try:
        return asyncio.run(args.func(args, config))
    except LauncherError as exc:
        log.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
