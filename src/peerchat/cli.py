"""
PeerChat - Interactive menu.

Reads the user's choices and drives the node:

    1. Send message
    2. Query active peers
    3. Connect to an active peer
    4. Quit

Prompts run in a worker thread so the event loop keeps serving peers while
the user types.
"""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from rich.console import Console
from rich.prompt import Prompt

from .errors import PeerChatError
from .node import ChatNode, QuitReport
from .ui import render_failure, render_peers, render_quit, render_receipt
from .utils import validate_ip, validate_port

logger = logging.getLogger(__name__)

MENU_TEXT = """
[bold]***** Menu *****[/]
1. Send message
2. Query active peers
3. Connect to an active peer
4. Quit
===================="""


class ChatMenu:
    """Menu loop around a running ChatNode."""

    def __init__(
        self,
        node: ChatNode,
        console: Optional[Console] = None,
        ask: Optional[Callable[[str], str]] = None,
    ):
        self.node = node
        self.console = console or Console()
        self._ask_sync = ask or (lambda prompt: Prompt.ask(prompt, console=self.console))

        self.actions = {
            "1": self.send_message_prompt,
            "2": self.query_peers,
            "3": self.connect_prompt,
        }

    async def ask(self, prompt: str) -> str:
        return (await asyncio.to_thread(self._ask_sync, prompt)).strip()

    async def run(self) -> QuitReport:
        """Show the menu until the user quits; returns the shutdown report."""
        while True:
            self.console.print(MENU_TEXT)
            try:
                choice = await self.ask("Enter choice")
            except (EOFError, KeyboardInterrupt):
                break

            if choice == "4":
                break
            action = self.actions.get(choice)
            if action is None:
                self.console.print("[red]❌ Invalid choice. Please try again.[/]")
                continue
            try:
                await action()
            except (EOFError, KeyboardInterrupt):
                break

        return await self.quit()

    async def _ask_target(self, what: str) -> Optional[Tuple[str, int]]:
        ip = await self.ask(f"Enter {what} IP address")
        port_text = await self.ask(f"Enter {what} port number")

        if not validate_ip(ip):
            self.console.print(f"[red]Invalid IP address: {ip!r}[/]")
            return None
        if not port_text.isdigit() or not validate_port(int(port_text)):
            self.console.print(f"[red]Invalid port number: {port_text!r}[/]")
            return None
        return ip, int(port_text)

    async def send_message_prompt(self) -> None:
        target = await self._ask_target("the recipient's")
        if target is None:
            return
        message = await self.ask("Enter your message")
        if not message:
            self.console.print("[red]Empty message not sent[/]")
            return

        try:
            receipt = await self.node.send(*target, message)
        except PeerChatError as e:
            self.console.print(render_failure(e))
            return
        self.console.print(render_receipt(receipt))

    async def query_peers(self) -> None:
        peers = self.node.list_peers()
        if not peers:
            self.console.print("🔍 No active peers")
            return
        self.console.print(render_peers(peers))

    async def connect_prompt(self) -> None:
        target = await self._ask_target("peer's")
        if target is None:
            return
        try:
            await self.node.connect_to(*target)
        except PeerChatError as e:
            self.console.print(render_failure(e))
            return
        self.console.print("Connection request sent!")

    async def quit(self) -> QuitReport:
        self.console.print("Sending exit message to peers...")
        report = await self.node.quit()
        self.console.print(render_quit(report))
        self.console.print("Server closed!")
        return report
