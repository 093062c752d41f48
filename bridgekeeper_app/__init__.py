"""
Application layer for BridgeKeeper.
Provides configuration, console utilities and the sequential batch session.
"""

__all__ = [
    "config",
    "console",
    "session",
]
