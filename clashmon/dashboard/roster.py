"""
Proxy roster construction.

Filters the /proxies map down to selector and auto-test groups and orders
them for display. Delays come from the history cached by the daemon at
poll time; no probe is issued here.
"""

from typing import Dict, List

from clashmon.api.models import ProxyItem
from clashmon.dashboard.events import ProxyRow

GLOBAL_GROUP = "GLOBAL"
NO_DELAY = "0"


def delay_label(item: ProxyItem) -> str:
    """Latest cached delay, or "0" when the group was never probed."""
    if item.history:
        return str(item.history[-1].delay)
    return NO_DELAY


def roster_sort_key(row: ProxyRow):
    """GLOBAL first, everything else by name."""
    return (row[0] != GLOBAL_GROUP, row[0])


def build_roster(proxies: Dict[str, ProxyItem]) -> List[ProxyRow]:
    """
    Build the ordered roster from a /proxies response.

    Args:
        proxies: Mapping of proxy name to ProxyItem

    Returns:
        (group_name, selected_node, delay_label) rows, GLOBAL first
    """
    rows = [
        (name, item.now or "", delay_label(item))
        for name, item in proxies.items()
        if item.is_group
    ]
    rows.sort(key=roster_sort_key)
    return rows
