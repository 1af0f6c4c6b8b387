"""
PeerChat - Node event observer.

The core reports what happens on the network (messages, handshakes,
departures, background failures) to an observer. The default observer
ignores everything; the console UI and the tests plug in their own.
"""


class NodeObserver:
    """Receives node events. All hooks are optional no-ops."""

    def message_received(self, address: str, team_name: str, text: str) -> None:
        pass

    def peer_connected(self, address: str, team_name: str) -> None:
        """A remote node completed a handshake with us."""

    def handshake_confirmed(self, address: str, team_name: str) -> None:
        """A handshake we started was acknowledged."""

    def handshake_failed(self, address: str, error: Exception) -> None:
        pass

    def peer_exited(self, address: str, team_name: str) -> None:
        pass

    def peer_disconnected(self, address: str, team_name: str) -> None:
        pass

    def send_failed(self, address: str, error: Exception) -> None:
        """A background send (mandatory fan-out) failed."""

