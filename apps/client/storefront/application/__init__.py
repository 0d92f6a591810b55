"""
===============================================================================
APPLICATION LAYER (Public API / Exports)
===============================================================================

Expone los stores con estado y el guard de navegación:
  - SessionManager: sesión (bootstrap, login, logout, perfil)
  - CartStore / WishlistStore: colecciones persistentes
  - NotificationFeedStore / UnreadCountPoller: feed admin
  - RouteGuard / decide / RouteTable: guard de rutas
===============================================================================
"""

from .collections import CartStore, PersistentCollection, WishlistStore, unit_price
from .listeners import Listeners
from .notifications import NotificationFeedStore, UnreadCountPoller
from .route_guard import (
    DecisionKind,
    GuardDecision,
    InMemoryNavigator,
    RouteAccess,
    RouteGuard,
    RouteSpec,
    RouteTable,
    decide,
    default_route_table,
)
from .session import SessionManager

__all__ = [
    "CartStore",
    "DecisionKind",
    "GuardDecision",
    "InMemoryNavigator",
    "Listeners",
    "NotificationFeedStore",
    "PersistentCollection",
    "RouteAccess",
    "RouteGuard",
    "RouteSpec",
    "RouteTable",
    "SessionManager",
    "UnreadCountPoller",
    "WishlistStore",
    "decide",
    "default_route_table",
    "unit_price",
]
