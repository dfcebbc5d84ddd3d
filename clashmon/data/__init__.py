"""
Data layer for the Clash monitor.

Provides:
- Newline-delimited stream decoding (lines, JSON objects)
"""

from clashmon.data.streams import iter_json_lines, iter_lines

__all__ = [
    "iter_lines",
    "iter_json_lines",
]
