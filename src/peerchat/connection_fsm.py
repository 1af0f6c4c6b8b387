"""
PeerChat - Session state machine.

Each socket handled by the acceptor walks through a small finite state
machine:

    OPEN ---------(ADDRESS_LEARNED)--------> ESTABLISHED
    OPEN ---------(HANDSHAKE_STARTED)------> HANDSHAKING
    HANDSHAKING --(ACK_RECEIVED)-----------> ESTABLISHED
    any live -----(CLOSED / ERROR)---------> CLOSED

Inbound sockets start in OPEN and become ESTABLISHED once the first line
has been decoded and the remote address is known. Outbound sockets that
sent ``connect`` wait in HANDSHAKING until the acknowledgement arrives.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of one socket."""

    OPEN = auto()  # Accepted or opened, remote address unknown
    HANDSHAKING = auto()  # Sent connect, waiting for the ack
    ESTABLISHED = auto()  # Remote address known, lines are routed
    CLOSED = auto()  # Socket closed or failed


class SessionEvent(Enum):
    """Events that trigger state transitions."""

    ADDRESS_LEARNED = auto()  # First line decoded on an inbound socket
    HANDSHAKE_STARTED = auto()  # Outbound connect written
    ACK_RECEIVED = auto()  # Handshake acknowledgement decoded
    CLOSED = auto()  # End of stream
    ERROR = auto()  # Socket error


@dataclass
class StateTransition:
    """Represents a state transition."""

    from_state: SessionState
    event: SessionEvent
    to_state: SessionState
    timestamp: float = field(default_factory=time.time)


class SessionStateMachine:
    """
    Finite state machine for one socket.

    Enforces valid transitions and remembers the remote address once it is
    known, so that close handling can tell an anonymous socket from one that
    belongs to a peer.
    """

    TRANSITIONS: Dict[SessionState, Dict[SessionEvent, SessionState]] = {
        SessionState.OPEN: {
            SessionEvent.ADDRESS_LEARNED: SessionState.ESTABLISHED,
            SessionEvent.HANDSHAKE_STARTED: SessionState.HANDSHAKING,
            SessionEvent.CLOSED: SessionState.CLOSED,
            SessionEvent.ERROR: SessionState.CLOSED,
        },
        SessionState.HANDSHAKING: {
            SessionEvent.ACK_RECEIVED: SessionState.ESTABLISHED,
            SessionEvent.CLOSED: SessionState.CLOSED,
            SessionEvent.ERROR: SessionState.CLOSED,
        },
        SessionState.ESTABLISHED: {
            SessionEvent.ADDRESS_LEARNED: SessionState.ESTABLISHED,
            SessionEvent.CLOSED: SessionState.CLOSED,
            SessionEvent.ERROR: SessionState.CLOSED,
        },
        SessionState.CLOSED: {},
    }

    def __init__(self, initial_state: SessionState = SessionState.OPEN):
        self.current_state = initial_state
        self.peer_address: Optional[str] = None
        self.error_message: Optional[str] = None
        self.transition_history: List[StateTransition] = []

    def transition(
        self,
        event: SessionEvent,
        peer_address: Optional[str] = None,
        error_msg: Optional[str] = None,
    ) -> bool:
        """
        Attempt a state transition.

        Args:
            event: Event triggering the transition
            peer_address: Remote address learned with this event, if any
            error_msg: Error description for SessionEvent.ERROR

        Returns:
            True if the transition was valid and applied
        """
        targets = self.TRANSITIONS[self.current_state]
        if event not in targets:
            logger.debug(f"Invalid session transition: {self.current_state.name} + {event.name}")
            return False

        new_state = targets[event]
        if peer_address is not None:
            self.peer_address = peer_address
        if event is SessionEvent.ERROR:
            self.error_message = error_msg or "Unknown error"

        self.transition_history.append(StateTransition(self.current_state, event, new_state))
        if new_state is not self.current_state:
            logger.debug(f"Session transition: {self.current_state.name} -> {new_state.name}")
        self.current_state = new_state
        return True

    @property
    def is_closed(self) -> bool:
        return self.current_state is SessionState.CLOSED

    @property
    def is_anonymous(self) -> bool:
        """True while no line from the remote side has identified it."""
        return self.peer_address is None

    def __repr__(self) -> str:
        return f"SessionStateMachine(state={self.current_state.name}, peer={self.peer_address})"
