"""Nostr DM auto-reply and remote-control daemon."""

from .app import Daemon, DaemonState, IDaemon
from .config import Settings, load_settings

__all__ = ["Daemon", "DaemonState", "IDaemon", "Settings", "load_settings"]
