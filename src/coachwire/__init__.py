"""
coachwire — realtime coaching session orchestration.

Drives a live voice/text coaching conversation over an upstream realtime
transport, watches the event stream to score coaching progress, and
negotiates the wrap-up summary with the client.
"""

__version__ = "0.1.0"
