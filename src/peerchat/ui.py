"""
PeerChat - Console rendering with rich.

ConsoleObserver prints network events as they happen; the render_*
helpers build the tables and notices shown by the interactive menu.
"""

from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .node import PeerView, QuitReport
from .observer import NodeObserver
from .registry import PeerState
from .sender import SendReceipt

STATE_STYLES = {
    PeerState.CONNECTED: "green",
    PeerState.MESSAGE_RECEIVED: "yellow",
    PeerState.DISCONNECTED: "dim",
}


class ConsoleObserver(NodeObserver):
    """Prints node events to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def message_received(self, address: str, team_name: str, text: str) -> None:
        body = Text()
        body.append("From: ", style="dim")
        body.append(f"{team_name} ({address})\n", style="cyan")
        body.append("Message: ", style="dim")
        body.append(text)
        self.console.print(Panel(body, title="Message Received", expand=False))

    def peer_connected(self, address: str, team_name: str) -> None:
        self.console.print(f"[green]New connection established with {team_name} ({address})[/]")

    def handshake_confirmed(self, address: str, team_name: str) -> None:
        self.console.print(f"[green]Connection confirmed with {team_name} ({address})[/]")

    def handshake_failed(self, address: str, error: Exception) -> None:
        self.console.print(render_failure(error))

    def peer_exited(self, address: str, team_name: str) -> None:
        self.console.print(f"[yellow]Peer {team_name} ({address}) has left[/]")

    def peer_disconnected(self, address: str, team_name: str) -> None:
        self.console.print(f"[yellow]Peer {team_name} ({address}) has disconnected[/]")

    def send_failed(self, address: str, error: Exception) -> None:
        self.console.print(render_failure(error))


def render_failure(error: Exception) -> Text:
    """Human-readable one-liner for a failed operation."""
    message = getattr(error, "message", None) or str(error)
    return Text(f"✗ {message}", style="bold red")


def render_peers(peers: List[PeerView]) -> Table:
    """Build the peer listing table, in first-seen order."""
    table = Table(title=f"Active Peers ({len(peers)})", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Address")
    table.add_column("State")

    for index, peer in enumerate(peers, start=1):
        table.add_row(
            str(index),
            peer.team_name,
            peer.address,
            Text(peer.state.value, style=STATE_STYLES[peer.state]),
        )
    return table


def render_receipt(receipt: SendReceipt) -> Text:
    """Summarize where a message went."""
    text = Text()
    how = "through existing connection" if receipt.reused else "successfully"
    text.append(f"✓ Message sent {how} to {receipt.address}", style="green")

    for address, error in receipt.fanout.items():
        if error is None:
            text.append(f"\n  ✓ relayed to mandatory peer {address}", style="green")
        else:
            text.append(f"\n  ✗ relay to {address} failed: {error.reason}", style="red")
    return text


def render_quit(report: QuitReport) -> Text:
    """Summarize the exit notifications sent on shutdown."""
    text = Text()
    for address in report.notified:
        text.append(f"Exit message sent to {address}\n", style="dim")
    failures: Dict[str, Exception] = report.failures
    for address, error in failures.items():
        text.append(f"Failed to send exit message to {address}: ", style="red")
        text.append(f"{getattr(error, 'message', error)}\n", style="red")
    return text
