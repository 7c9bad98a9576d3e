"""
MediStore - command line tool for storing medical imaging objects
in filesystem or S3-compatible storage.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Union

from internal.config.manager import ConfigManager
from internal.models import DicomMediaId, MediaIdentifier
from internal.services.storage import StorageError, StorageService
from lib.logging_utils import initLogging
from lib.utils import jsonDumps

# Configure basic logging first
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.WARNING)
logger = logging.getLogger(__name__)

# Configuration keys which values are hidden in --print-config output
SECRET_CONFIG_KEYS = {"key-secret", "session-token"}

# File name for reading from stdin / writing to stdout
STDIO_FILE_NAME = "-"


class MediStoreApp:
    """Main application orchestrator that coordinates all components."""

    def __init__(self, configPath: str = "config.toml", config_dirs: Optional[List[str]] = None):
        """Initialize application with all components."""
        # Initialize configuration
        self.configManager = ConfigManager(configPath, config_dirs)

        # Initialize logging with config
        initLogging(self.configManager.getLoggingConfig())

        # Initialize storage
        self.storage = StorageService.getInstance()
        self.storage.injectConfig(self.configManager)

    async def put(
        self, target: Union[MediaIdentifier, str], fileName: str, contentType: Optional[str], meta: Optional[str]
    ):
        payload: Any = sys.stdin.buffer if fileName == STDIO_FILE_NAME else fileName
        location = await self.storage.store(target, payload, contentType, meta)
        print(location.id)

    async def get(self, target: Union[MediaIdentifier, str], fileName: str) -> bool:
        location = await self.storage.resolve(target)
        if not await location.exists():
            logger.error(f"Object {location} not found, dood!")
            return False

        if fileName == STDIO_FILE_NAME:
            await location.downloadTo(sys.stdout.buffer)
            sys.stdout.buffer.flush()
        else:
            with open(fileName, "wb") as f:
                await location.downloadTo(f)
        return True

    async def delete(self, target: Union[MediaIdentifier, str]) -> bool:
        return await self.storage.delete(target)

    async def info(self, target: Union[MediaIdentifier, str]) -> bool:
        location = await self.storage.resolve(target)
        exists = await location.exists()
        info: Dict[str, Any] = {
            "id": location.id,
            "container": location.containerName,
            "key": location.key,
            "exists": exists,
        }
        if exists:
            info["size"] = await location.getSize()
            info["content-type"] = await location.getContentType()
            info["metadata"] = await location.getMetadata()

        print(jsonDumps(info, indent=2))
        return exists

    async def ls(self, containerKey: Optional[str], prefix: Optional[str]):
        if containerKey is None:
            async for container in self.storage.listContainers(prefix):
                print(container.name)
            return

        if not await self.storage.containerExists(containerKey):
            logger.warning(f"Container {containerKey} does not exist, dood!")
            return

        container = await self.storage.getContainer(containerKey)
        async for location in container.getLocations(prefix):
            print(location.key)

    async def run(self, args: argparse.Namespace) -> int:
        """Run command from parsed arguments, return exit code."""
        match args.command:
            case "put":
                await self.put(getTarget(args), args.file, args.content_type, args.meta)
                return 0
            case "get":
                return 0 if await self.get(getTarget(args), args.file) else 1
            case "delete":
                if not await self.delete(getTarget(args)):
                    logger.warning("Nothing to delete, dood!")
                return 0
            case "info":
                return 0 if await self.info(getTarget(args)) else 1
            case "ls":
                await self.ls(args.container, args.prefix)
                return 0
            case _:
                raise ValueError(f"Unknown command: {args.command}")


def getTarget(args: argparse.Namespace) -> Union[MediaIdentifier, str]:
    """Get storage key or media identifier from command arguments."""
    if args.key:
        return args.key

    if args.study is None and args.series is None and args.instance is None and args.frame is None:
        raise ValueError("Either storage key or --study/--series/--instance/--frame must be specified")

    return DicomMediaId(
        studyInstanceUid=args.study,
        seriesInstanceUid=args.series,
        sopInstanceUid=args.instance,
        frameNumber=args.frame,
    )


def addTargetArguments(parser: argparse.ArgumentParser):
    """Add object target arguments to the command parser."""
    parser.add_argument("key", nargs="?", help="Storage key (study/series/instance), dood!")
    parser.add_argument("--study", help="Study Instance UID")
    parser.add_argument("--series", help="Series Instance UID")
    parser.add_argument("--instance", help="SOP Instance UID")
    parser.add_argument("--frame", type=int, help="Frame number")


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MediStore - store medical imaging objects in filesystem or S3 storage, dood!"
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.toml",
        help="Path to configuration file (default: config.toml)",
    )
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Directory to search for .toml config files recursively (can be specified multiple times), dood!",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Pretty-print loaded configuration and exit, dood!",
    )

    subparsers = parser.add_subparsers(dest="command")

    putParser = subparsers.add_parser("put", help="Upload file to storage")
    addTargetArguments(putParser)
    putParser.add_argument("--file", required=True, help="File to upload ('-' for stdin)")
    putParser.add_argument("--content-type", help="MIME type (detected by location name if omitted)")
    putParser.add_argument("--meta", help="Metadata string to attach")

    getParser = subparsers.add_parser("get", help="Download object from storage")
    addTargetArguments(getParser)
    getParser.add_argument("--file", required=True, help="Destination file ('-' for stdout)")

    deleteParser = subparsers.add_parser("delete", help="Delete object from storage")
    addTargetArguments(deleteParser)

    infoParser = subparsers.add_parser("info", help="Show object properties")
    addTargetArguments(infoParser)

    lsParser = subparsers.add_parser("ls", help="List containers or locations in container")
    lsParser.add_argument("--container", help="Container to list locations of")
    lsParser.add_argument("--prefix", help="Name prefix filter")

    args = parser.parse_args(argv)
    if not args.print_config and args.command is None:
        parser.error("command is required unless --print-config is given")

    args.config = os.path.abspath(args.config)

    # Convert config directories to absolute paths
    if args.config_dir:
        args.config_dir = [os.path.abspath(dir_path) for dir_path in args.config_dir]

    return args


def hideSecrets(config: Any) -> Any:
    """Replace values of secret configuration keys with '***'."""
    if isinstance(config, dict):
        return {
            key: "***" if key in SECRET_CONFIG_KEYS and value else hideSecrets(value) for key, value in config.items()
        }
    elif isinstance(config, list):
        return [hideSecrets(item) for item in config]
    return config


def prettyPrintConfig(config_manager: ConfigManager):
    """Pretty-print the loaded configuration and exit, dood!"""
    print("=== MediStore Configuration ===")
    print()

    print(jsonDumps(hideSecrets(config_manager.config), indent=2))

    print()
    print("=== Configuration loaded successfully, dood! ===")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_arguments(argv)

    try:
        # Handle --print-config argument first
        if args.print_config:
            # Initialize only the config manager to load and print config
            config_manager = ConfigManager(args.config, args.config_dir)
            prettyPrintConfig(config_manager)
            sys.exit(0)

        app = MediStoreApp(configPath=args.config, config_dirs=args.config_dir)
        exitCode = asyncio.run(app.run(args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        exitCode = 1
    except (StorageError, ValueError) as e:
        logger.error(f"Command failed: {e}")
        exitCode = 1
    except Exception as e:
        logger.error(f"MediStore crashed: {e}")
        logger.exception(e)
        exitCode = 1

    sys.exit(exitCode)


if __name__ == "__main__":
    main()
