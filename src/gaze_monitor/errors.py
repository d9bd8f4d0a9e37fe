class GazeMonitorError(Exception):
    """Base class for all errors raised by gaze_monitor."""


class ConnectError(GazeMonitorError):
    """Socket, handshake or calibration failure while opening a session."""


class SendError(GazeMonitorError):
    """A request could not be written to the tracker connection."""


class ProtocolError(GazeMonitorError):
    """Malformed or unexpected data received from the tracker server."""


class ConnectionClosedError(ProtocolError):
    """The tracker server closed the connection."""


class TransientDiscard(GazeMonitorError):
    """
    A message that is skipped rather than treated as fatal.

    Raised for heartbeat echoes, non-success status codes and push messages
    that carry no frame.
    """


class RenderError(GazeMonitorError):
    """A brush or background image is missing or cannot be decoded."""


class ConfigError(GazeMonitorError):
    """A configuration file exists but cannot be parsed."""
