"""
Plugins intercepting runs, agents, model calls and tool calls.
"""

from .base_plugin import BasePlugin
from .plugin_manager import PluginManager
from .logging_plugin import LoggingPlugin

__all__ = [
    "BasePlugin",
    "PluginManager",
    "LoggingPlugin",
]
