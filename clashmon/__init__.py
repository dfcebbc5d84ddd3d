"""
Clash monitor: live terminal dashboard and CLI for a Clash proxy daemon.
"""

__version__ = "0.1.0"
