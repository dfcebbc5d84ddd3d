"""Live terminal dashboard for a running Clash daemon."""

from clashmon.dashboard.app import Dashboard, LoopState, run_dashboard
from clashmon.dashboard.channel import EventChannel, Sender
from clashmon.dashboard.state import Snapshot, push_bounded

__all__ = [
    'Dashboard',
    'EventChannel',
    'LoopState',
    'Sender',
    'Snapshot',
    'push_bounded',
    'run_dashboard'
]
