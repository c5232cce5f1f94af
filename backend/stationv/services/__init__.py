"""
Services Module

Provides interfaces for external services:
- IRC bridge: per-client upstream sessions on real IRC networks
"""

from .irc_bridge import (
    BridgeSession,
    IrcBridge,
    build_bridge,
)

__all__ = [
    "BridgeSession",
    "IrcBridge",
    "build_bridge",
]
