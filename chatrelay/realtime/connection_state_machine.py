"""
Connection state machine for the relay bus.

Tracks the bus connection through disconnected, connecting and connected.
Transport callbacks can fire at any time and more than once, so the
mark_* helpers below ignore signals that do not apply to the current state
instead of raising TransitionNotAllowed.
"""

from datetime import UTC, datetime
from typing import Any

from statemachine import State, StateMachine

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class BusConnectionStateMachine(StateMachine):
    """
    State machine for the bus connection lifecycle.

    Transitions:
    - disconnected -> connecting: connect
    - connecting -> connected: connected_successfully
    - connecting -> disconnected: connection_failed
    - connected -> disconnected: disconnect
    """

    disconnected = State("Disconnected", initial=True)
    connecting = State("Connecting")
    connected = State("Connected")

    connect = disconnected.to(connecting)
    connected_successfully = connecting.to(connected)
    connection_failed = connecting.to(disconnected)
    disconnect = connected.to(disconnected)

    def __init__(self, connection_id: str):
        # on_enter_state runs during super().__init__() for the initial state
        self.connection_id = connection_id
        self.last_connected_time: datetime | None = None
        self.last_error: Exception | None = None
        self.total_connections = 0
        self.total_disconnections = 0

        super().__init__()

    def on_enter_state(self, state: State, event=None, **kwargs) -> None:
        """Log every transition."""
        logger.info(
            "Bus connection state transition",
            connection_id=self.connection_id,
            trigger_event=str(event) if event else "unknown",
            to_state=state.id,
        )

    def on_connected_successfully(self) -> None:
        self.last_connected_time = datetime.now(UTC)
        self.last_error = None
        self.total_connections += 1

    def on_connection_failed(self, error: Exception | None = None) -> None:
        self.last_error = error
        logger.warning(
            "Bus connection failed",
            connection_id=self.connection_id,
            error=str(error) if error else "unknown",
        )

    def on_disconnect(self) -> None:
        self.total_disconnections += 1

    @property
    def state_id(self) -> str:
        return self.current_state.id

    def is_connected(self) -> bool:
        return self.current_state.id == "connected"

    def mark_connecting(self) -> bool:
        """Enter connecting from disconnected. Returns False if not applicable."""
        if self.current_state.id != "disconnected":
            return False
        self.connect()
        return True

    def mark_connected(self) -> bool:
        """
        Record transport-reported connection success.

        A reconnect reported while disconnected passes through connecting first.
        """
        if self.current_state.id == "connected":
            return False
        if self.current_state.id == "disconnected":
            self.connect()
        self.connected_successfully()
        return True

    def mark_failed(self, error: Exception | None = None) -> bool:
        if self.current_state.id != "connecting":
            return False
        self.connection_failed(error=error)
        return True

    def mark_disconnected(self) -> bool:
        """Record a transport disconnect. Repeated signals are ignored."""
        match self.current_state.id:
            case "connected":
                self.disconnect()
                return True
            case "connecting":
                self.connection_failed()
                return True
            case _:
                logger.debug("Ignoring duplicate disconnect signal", connection_id=self.connection_id)
                return False

    def get_stats(self) -> dict[str, Any]:
        """Connection statistics for diagnostics."""
        return {
            "connection_id": self.connection_id,
            "current_state": self.current_state.id,
            "total_connections": self.total_connections,
            "total_disconnections": self.total_disconnections,
            "last_connected_time": self.last_connected_time.isoformat() if self.last_connected_time else None,
            "last_error": str(self.last_error) if self.last_error else None,
        }
