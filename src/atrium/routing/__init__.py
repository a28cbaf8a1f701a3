"""Routing — trie-matched route table.

Routes are added during setup and compiled into an immutable lookup
structure. Page and artifact routes are compiled into a fresh table on
every rebuild, then swapped in whole.
"""

from atrium.routing.route import Route, RouteMatch
from atrium.routing.router import Router, parse_path

__all__ = ["Route", "RouteMatch", "Router", "parse_path"]
