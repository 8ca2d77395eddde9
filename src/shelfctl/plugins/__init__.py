"""Extension layer — notification plugins via pluggy.

INVARIANT: Notifier failures are warnings, never errors.
"""

from shelfctl.plugins.event_bus import EventBus
from shelfctl.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager"]
