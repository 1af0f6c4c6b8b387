"""
PeerChat - Session state machine tests.
"""

from peerchat.connection_fsm import SessionEvent, SessionState, SessionStateMachine


def test_inbound_socket_learns_address():
    fsm = SessionStateMachine()
    assert fsm.current_state is SessionState.OPEN
    assert fsm.is_anonymous

    assert fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address="127.0.0.1:5000")
    assert fsm.current_state is SessionState.ESTABLISHED
    assert fsm.peer_address == "127.0.0.1:5000"
    assert not fsm.is_anonymous


def test_outbound_handshake_path():
    fsm = SessionStateMachine()
    assert fsm.transition(SessionEvent.HANDSHAKE_STARTED, peer_address="127.0.0.1:5001")
    assert fsm.current_state is SessionState.HANDSHAKING

    assert fsm.transition(SessionEvent.ACK_RECEIVED)
    assert fsm.current_state is SessionState.ESTABLISHED


def test_error_before_address_is_anonymous_close():
    fsm = SessionStateMachine()
    assert fsm.transition(SessionEvent.ERROR, error_msg="reset")
    assert fsm.is_closed
    assert fsm.is_anonymous
    assert fsm.error_message == "reset"


def test_later_lines_update_address():
    fsm = SessionStateMachine()
    fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address="127.0.0.1:5000")
    assert fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address="127.0.0.1:5002")
    assert fsm.peer_address == "127.0.0.1:5002"


def test_invalid_transitions_are_rejected():
    fsm = SessionStateMachine()
    assert not fsm.transition(SessionEvent.ACK_RECEIVED)
    assert fsm.current_state is SessionState.OPEN

    fsm.transition(SessionEvent.CLOSED)
    assert not fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address="127.0.0.1:1")
    assert fsm.is_closed
    assert fsm.is_anonymous


def test_history_is_recorded():
    fsm = SessionStateMachine()
    fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address="127.0.0.1:5000")
    fsm.transition(SessionEvent.CLOSED)

    assert [t.to_state for t in fsm.transition_history] == [
        SessionState.ESTABLISHED,
        SessionState.CLOSED,
    ]
