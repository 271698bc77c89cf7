"""
Coachwire Transport Layer

The upstream realtime channel, seen as a capability:
- TransportSession: connect / send_event / mute / close + event subscription
- parse_event: raw server events → typed variants
- RealtimeWebSocketTransport: the concrete channel over websockets

Usage:
    from coachwire.transport import RealtimeWebSocketTransport, parse_event

    transport = RealtimeWebSocketTransport.from_config(config.transport)
    transport.on_event(lambda raw: handle(parse_event(raw)))
    await transport.connect(credential)
"""

from coachwire.transport.base import TransportSession
from coachwire.transport.events import TransportEvent, parse_event
from coachwire.transport.websocket import RealtimeWebSocketTransport

__all__ = [
    "TransportSession",
    "TransportEvent",
    "parse_event",
    "RealtimeWebSocketTransport",
]
