"""
PeerChat - Main entry point for the application.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import IntPrompt, Prompt

from . import __version__
from .cli import ChatMenu
from .config import Config
from .errors import PeerChatError
from .node import ChatNode
from .ui import ConsoleObserver, render_failure

logger = logging.getLogger(__name__)


def setup_logging(config: Config, console: Console, debug: bool = False) -> None:
    """Configure the root logger from the [logging] section."""
    level_name = "DEBUG" if debug else str(config.get("logging", "level", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)

    handlers: list = [RichHandler(console=console, show_path=False)]
    log_file = config.get("logging", "file", "")
    if log_file:
        file_handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PeerChat - Decentralized peer-to-peer text messaging node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  peerchat                                  # Prompt for name, IP and port
  peerchat --name Alpha --ip 127.0.0.1 --port 5000
  peerchat --config node.toml --mandatory   # Relay every message to mandatory peers
        """,
    )

    parser.add_argument("--version", action="version", version=f"PeerChat {__version__}")
    parser.add_argument("--config", type=str, default=None, help="Path to a TOML config file")
    parser.add_argument("--name", type=str, default=None, help="Your name (single word)")
    parser.add_argument("--ip", type=str, default=None, help="IP address advertised to peers")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on")
    parser.add_argument(
        "--mandatory",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Relay every message to the configured mandatory peers",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def load_config(args: argparse.Namespace, console: Console) -> Config:
    """Merge file, environment and command-line settings; prompt for the rest."""
    config = Config(Path(args.config).expanduser() if args.config else None)

    if args.name is not None:
        config.set("identity", "name", args.name)
    if args.ip is not None:
        config.set("identity", "ip", args.ip)
    if args.port is not None:
        config.set("identity", "port", args.port)
    if args.mandatory is not None:
        config.set("mandatory", "enabled", args.mandatory)

    if not config.get("identity", "name"):
        config.set("identity", "name", Prompt.ask("Enter your name", console=console))
        config.set(
            "identity",
            "ip",
            Prompt.ask("Enter your IP address", default=config.get("identity", "ip"), console=console),
        )
        config.set(
            "identity",
            "port",
            IntPrompt.ask(
                "Enter your port number", default=config.get("identity", "port"), console=console
            ),
        )
    return config


async def async_main(config: Config, console: Console) -> int:
    """Run a node and its menu until the user quits."""
    node = ChatNode.from_config(config, observer=ConsoleObserver(console))
    port = await node.start_server()
    console.print(f"Server listening on port {port}")

    await ChatMenu(node, console=console).run()
    return 0


def main():
    """Main entry point for PeerChat."""
    args = build_parser().parse_args()
    console = Console()

    try:
        config = load_config(args, console)
        setup_logging(config, console, args.debug)
        exit_code = asyncio.run(async_main(config, console))
    except (EOFError, KeyboardInterrupt):
        console.print("\nExiting...")
        sys.exit(130)
    except PeerChatError as e:
        console.print(render_failure(e))
        sys.exit(1)

    console.print("Exiting...")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
