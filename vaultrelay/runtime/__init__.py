"""
vaultrelay Runtime - configuration, wiring and the relay client.
"""

from vaultrelay.runtime.config import EngineConfig
from vaultrelay.runtime.context import RuntimeContext
from vaultrelay.runtime.relay import Relay

__all__ = ["EngineConfig", "RuntimeContext", "Relay"]
