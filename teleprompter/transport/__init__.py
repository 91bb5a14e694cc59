"""Display transports — where rendered frames go.

RULES:
- Every transport subclasses BaseTransport and implements display()
- TransportClosedError is the only signal the loop needs to stop a session
"""

from teleprompter.transport.base import BaseTransport, TransportClosedError, TransportError
from teleprompter.transport.console import ConsoleTransport
from teleprompter.transport.frame_buffer import Frame, FrameBufferTransport
from teleprompter.transport.webhook import WebhookTransport

__all__ = [
    "BaseTransport",
    "ConsoleTransport",
    "Frame",
    "FrameBufferTransport",
    "TransportClosedError",
    "TransportError",
    "WebhookTransport",
]
