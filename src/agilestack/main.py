"""
Command line entry point of the AgileStack core.

Examples:
    # Serve the plugin registry (SHARED_FOLDER must be set)
    agilestack-core serve

    # Serve with a custom configuration and debug logging
    agilestack-core serve --config /etc/agilestack/core.yaml --log-level DEBUG

    # Talk to a running registry
    agilestack-core list-available
    agilestack-core install agilestack-proxy --cmd "npm start"
    agilestack-core uninstall agilestack-proxy
    agilestack-core create room-booking http://rooms.local /tmp/room-booking
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import docker
from docker.errors import DockerException
from jsonschema import ValidationError
from nats.errors import NoRespondersError

from .common.config import DEFAULT_CONFIG_PATHS, ConfigurationManager, CoreSettings, load_config
from .common.logging_setup import get_logger, setup_logging
from .common.nats_client import NATSClient
from .proto.topics import Topics
from .registry.client import RegistryClient
from .registry.dispatcher import DispatcherContext, RegistryDispatcher
from .registry.errors import RegistryError
from .registry.plugin_factory import DockerPluginFactory
from .registry.registry import PluginRegistry
from .registry.runtime import DockerRuntimeAdapter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agilestack-core",
        description="AgileStack plugin registry"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the core configuration (YAML or JSON)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides LOG_LEVEL)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("serve", help="Serve the plugin registry on NATS")
    commands.add_parser("list-available", help="List plugins that can be installed")
    commands.add_parser("list-installed", help="List running plugins")

    install = commands.add_parser("install", help="Install (or re-install) a plugin")
    install.add_argument("name", help="Plugin name, e.g. agilestack-proxy")
    install.add_argument("--cmd", default=None, help="Command overriding the image's default")

    uninstall = commands.add_parser("uninstall", help="Uninstall a plugin")
    uninstall.add_argument("name", help="Plugin name")

    create = commands.add_parser("create", help="Build a new plugin image")
    create.add_argument("name", help="Plugin name, without the plugin prefix")
    create.add_argument("url", help="URL written into the plugin's config.json")
    create.add_argument("directory", help="Docker build context directory")
    create.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait for the build")

    return parser


def load_settings(config_path: Optional[str], logger: logging.Logger) -> CoreSettings:
    """Load .env and the core configuration file, then read the settings.

    Raises:
        ValueError: If the configuration file is missing
        ValidationError: If it does not match the configuration schema
    """
    env_files = [path for path in DEFAULT_CONFIG_PATHS if path.name == ".env" and path.exists()]
    if env_files:
        load_config(search_paths=env_files)

    manager = ConfigurationManager(logger)
    manager.load_core_config(config_path or next(p for p in DEFAULT_CONFIG_PATHS if p.suffix == ".yaml"))
    return CoreSettings.from_env()


async def serve(settings: CoreSettings, logger: logging.Logger) -> int:
    """Run the registry until SIGTERM or SIGINT."""
    if not settings.shared_folder:
        logger.error("$SHARED_FOLDER is undefined. Cannot initialize the plugins.")
        return 1
    logger.info("Shared folder", extra={"shared_folder": settings.shared_folder})

    try:
        docker_client = docker.from_env()
    except DockerException as e:
        logger.error("Cannot connect to Docker", extra={"error": str(e)})
        return 1

    adapter = DockerRuntimeAdapter.from_settings(
        settings, client=docker_client, logger=get_logger("runtime", logger)
    )
    registry = PluginRegistry(adapter, logger=get_logger("registry", logger))
    factory = DockerPluginFactory(
        docker_client, plugin_prefix=settings.plugin_prefix, logger=get_logger("factory", logger)
    )
    nats_client = NATSClient(
        nats_url=settings.nats_url,
        logger=get_logger("nats", logger),
        name=settings.nats_client_name,
    )
    dispatcher = RegistryDispatcher(
        registry,
        nats_client,
        plugin_factory=factory,
        context=DispatcherContext.from_settings(settings),
        logger=get_logger("dispatcher", logger),
    )

    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            asyncio.get_running_loop().add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda *_: signal_handler())

    try:
        await adapter.ping()
        await nats_client.connect()
    except (RegistryError, ConnectionError) as e:
        logger.error("Start-up failed", extra={"error": str(e)})
        await nats_client.close()
        return 1

    try:
        await dispatcher.start()
        logger.info("Registry is serving", extra={"namespace": settings.topic_namespace})
        await stop_event.wait()
    finally:
        stopped = await dispatcher.shutdown()
        logger.info("Registry stopped", extra={"plugins_stopped": stopped})
        await nats_client.close()
    return 0


async def run_client_command(args, settings: CoreSettings, logger: logging.Logger) -> int:
    """Send one request to a running registry and print the reply."""
    async with NATSClient(
        nats_url=settings.nats_url,
        logger=get_logger("nats", logger),
        name=f"{settings.nats_client_name}-cli",
        max_reconnect_attempts=1,
    ) as nats_client:
        client = RegistryClient(nats_client, topics=Topics(settings.topic_namespace))
        try:
            if args.command == "list-available":
                for plugin in await client.list_available():
                    print(plugin.name)
            elif args.command == "list-installed":
                for plugin in await client.list_installed():
                    print(plugin.name)
            elif args.command == "install":
                await client.install(args.name, args.cmd)
                print(f"Plugin {args.name} installed")
            elif args.command == "uninstall":
                await client.uninstall(args.name)
                print(f"Plugin {args.name} uninstalled")
            elif args.command == "create":
                directory = str(Path(args.directory).resolve())
                if not await client.create(args.name, args.url, directory, timeout=args.timeout):
                    print(f"Creation of plugin {args.name} failed", file=sys.stderr)
                    return 1
                print(f"Plugin {settings.plugin_prefix}{args.name} created")
        except RegistryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except NoRespondersError:
            print(f"Error: no registry is serving {settings.topic_namespace}.*", file=sys.stderr)
            return 1
        except asyncio.TimeoutError:
            print("Error: no reply from the registry", file=sys.stderr)
            return 1
    return 0


async def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logger = setup_logging(level=args.log_level or "INFO", fmt="text" if args.command != "serve" else "json")
    try:
        settings = load_settings(args.config, logger)
    except (ValueError, ValidationError) as e:
        logger.error("Invalid configuration", extra={"error": str(e)})
        return 1

    if args.command == "serve":
        logger = setup_logging(level=args.log_level or settings.log_level, fmt=settings.log_format)
        return await serve(settings, logger)

    logger = setup_logging(level=args.log_level or "WARNING", fmt="text")
    try:
        return await run_client_command(args, settings, logger)
    except ConnectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
