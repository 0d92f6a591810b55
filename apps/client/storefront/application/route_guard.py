"""
===============================================================================
TARJETA CRC — application/route_guard.py
===============================================================================

Módulo:
    Route Guard State Machine

Responsabilidades:
    - Describir las rutas (RouteSpec / RouteTable) con su nivel de acceso.
    - Decidir (pura y determinista) LOADING / RENDER / REDIRECT a partir de
      (status de sesión, rol, ruta, path).
    - Aplicar la decisión vía Navigator.replace (único efecto lateral).
    - Re-evaluar la ubicación actual cuando cambia la sesión.

Colaboradores:
    - domain.roles: can_access / landing_path / LandingPaths
    - application.session.SessionManager (snapshot + subscribe)
    - domain.ports.Navigator
    - crosscutting.metrics: storefront_guard_decisions_total

Reglas:
    - RESOLVING => LOADING para rutas protegidas y public-only: nunca se
      renderiza contenido protegido ni se redirige antes de conocer la sesión.
    - ANONYMOUS en ruta protegida => sign-in, guardando el path pedido en
      state["from"].
    - Rol insuficiente => landing path del propio rol (nunca el path pedido).
    - Public-only con sesión => landing path del rol.
    - Path desconocido => home (catch-all).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_guard_decision
from ..context import set_operation_context
from ..domain.entities import SessionSnapshot, SessionStatus
from ..domain.ports import Navigator
from ..domain.roles import (
    DEFAULT_LANDING_PATHS,
    LandingPaths,
    Role,
    RoleLike,
    can_access,
    landing_path,
    resolve,
)
from .listeners import Unsubscribe
from .session import SessionManager


class RouteAccess(str, Enum):
    PUBLIC = "PUBLIC"
    PUBLIC_ONLY = "PUBLIC_ONLY"
    PROTECTED = "PROTECTED"


def _segments(path: str) -> List[str]:
    return [s for s in (path or "").split("?", 1)[0].split("/") if s]


@dataclass(frozen=True, slots=True)
class RouteSpec:
    """Patrón de ruta: segmentos literales, `:param` y `*` final (subárbol)."""

    pattern: str
    access: RouteAccess = RouteAccess.PUBLIC
    required_roles: FrozenSet[Role] = field(default_factory=frozenset)

    def matches(self, path: str) -> bool:
        pattern = _segments(self.pattern)
        actual = _segments(path)
        if pattern and pattern[-1] == "*":
            prefix = pattern[:-1]
            if len(actual) < len(prefix):
                return False
            return all(_segment_matches(p, a) for p, a in zip(prefix, actual))
        if len(pattern) != len(actual):
            return False
        return all(_segment_matches(p, a) for p, a in zip(pattern, actual))


def _segment_matches(pattern: str, actual: str) -> bool:
    return pattern.startswith(":") or pattern == actual


def protected(pattern: str, *roles: Role) -> RouteSpec:
    return RouteSpec(pattern, RouteAccess.PROTECTED, frozenset(roles))


def public(pattern: str) -> RouteSpec:
    return RouteSpec(pattern, RouteAccess.PUBLIC)


def public_only(pattern: str) -> RouteSpec:
    return RouteSpec(pattern, RouteAccess.PUBLIC_ONLY)


class RouteTable:
    """Primer match gana; sin match => None (catch-all al home)."""

    def __init__(self, routes: Iterable[RouteSpec]) -> None:
        self._routes: Tuple[RouteSpec, ...] = tuple(routes)

    @property
    def routes(self) -> Tuple[RouteSpec, ...]:
        return self._routes

    def match(self, path: str) -> Optional[RouteSpec]:
        for route in self._routes:
            if route.matches(path):
                return route
        return None


def default_route_table(login_path: str = "/login") -> RouteTable:
    return RouteTable(
        [
            public_only(login_path),
            public_only("/register"),
            public_only("/forgot-password"),
            public_only("/reset-password/:token"),
            protected("/admin/*", Role.ADMIN),
            protected("/vendor/*", Role.VENDOR, Role.ADMIN),
            protected("/profile", Role.BUYER),
            protected("/orders", Role.BUYER),
            protected("/orders/:id", Role.BUYER),
            protected("/checkout", Role.BUYER),
            public("/"),
            public("/category/:id"),
            public("/product/:id"),
            public("/cart"),
            public("/search"),
            public("/about"),
        ]
    )


class DecisionKind(str, Enum):
    LOADING = "LOADING"
    RENDER = "RENDER"
    REDIRECT = "REDIRECT"


@dataclass(frozen=True, slots=True)
class GuardDecision:
    kind: DecisionKind
    target: Optional[str] = None
    state: Optional[Mapping[str, Any]] = None
    replace: bool = True


LOADING = GuardDecision(DecisionKind.LOADING)
RENDER = GuardDecision(DecisionKind.RENDER)


def _redirect(target: str, state: Optional[Mapping[str, Any]] = None) -> GuardDecision:
    return GuardDecision(DecisionKind.REDIRECT, target=target, state=state)


def decide(
    status: SessionStatus,
    role: RoleLike,
    route: Optional[RouteSpec],
    path: str,
    *,
    login_path: str = "/login",
    paths: LandingPaths = DEFAULT_LANDING_PATHS,
) -> GuardDecision:
    """Función pura: mismas entradas => misma decisión."""
    if route is None:
        return _redirect(paths.home)

    if route.access == RouteAccess.PUBLIC:
        return RENDER

    if status == SessionStatus.RESOLVING:
        return LOADING

    authenticated = status == SessionStatus.AUTHENTICATED
    actual = resolve(role) if authenticated else Role.GUEST

    if route.access == RouteAccess.PUBLIC_ONLY:
        return _redirect(landing_path(actual, paths)) if authenticated else RENDER

    if not authenticated:
        return _redirect(login_path, {"from": path})
    if can_access(route.required_roles, actual):
        return RENDER
    return _redirect(landing_path(actual, paths))


class RouteGuard:
    """Aplica decide() sobre el Navigator y sigue los cambios de sesión."""

    def __init__(
        self,
        session: SessionManager,
        navigator: Navigator,
        *,
        table: RouteTable | None = None,
        login_path: str = "/login",
        paths: LandingPaths = DEFAULT_LANDING_PATHS,
    ) -> None:
        self._session = session
        self._navigator = navigator
        self._login_path = login_path
        self._table = table or default_route_table(login_path)
        self._paths = paths
        self._unsubscribe: Unsubscribe | None = None
        self._last: GuardDecision = LOADING

    @property
    def last_decision(self) -> GuardDecision:
        return self._last

    def evaluate(self, path: str) -> GuardDecision:
        """Decisión sin efectos (para render)."""
        snapshot = self._session.snapshot
        return decide(
            snapshot.status,
            snapshot.role,
            self._table.match(path),
            path,
            login_path=self._login_path,
            paths=self._paths,
        )

    def check(self, path: str | None = None) -> GuardDecision:
        """Evalúa `path` (o la ubicación actual) y aplica el redirect si toca."""
        path = path if path is not None else self._navigator.location
        set_operation_context(route=path)
        decision = self.evaluate(path)
        route = self._table.match(path)
        if (
            decision.kind == DecisionKind.REDIRECT
            and route is not None
            and route.access == RouteAccess.PUBLIC_ONLY
            and path == self._navigator.location
        ):
            # Sesión recién abierta en sign-in: vuelve al destino recordado.
            decision = _redirect(self.after_sign_in(self._navigator.state))
        self._last = decision
        record_guard_decision(decision.kind.value)
        if decision.kind == DecisionKind.REDIRECT and decision.target is not None:
            if _segments(decision.target) != _segments(path):
                logger.info(
                    "Guard redirect",
                    extra={"from_path": path, "target": decision.target},
                )
                self._navigator.replace(decision.target, decision.state)
        return decision

    def bind(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._session.subscribe(self._on_session_change)

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_session_change(self, snapshot: SessionSnapshot) -> None:
        self.check()

    def after_sign_in(self, state: Optional[Mapping[str, Any]] = None) -> str:
        """Destino post-login: state["from"] si el rol puede verlo, si no su landing."""
        snapshot = self._session.snapshot
        requested = (state or {}).get("from")
        if isinstance(requested, str) and requested:
            route = self._table.match(requested)
            decision = decide(
                snapshot.status,
                snapshot.role,
                route,
                requested,
                login_path=self._login_path,
                paths=self._paths,
            )
            if decision.kind == DecisionKind.RENDER:
                return requested
        return landing_path(snapshot.role, self._paths)


class InMemoryNavigator:
    """Navigator en memoria: ubicación actual, historial y state del redirect."""

    def __init__(self, initial: str = "/") -> None:
        self._history: List[Tuple[str, Dict[str, Any]]] = [(initial, {})]
        self.replace_calls: List[Tuple[str, Dict[str, Any]]] = []

    @property
    def location(self) -> str:
        return self._history[-1][0]

    @property
    def state(self) -> Dict[str, Any]:
        return dict(self._history[-1][1])

    @property
    def history(self) -> List[str]:
        return [path for path, _ in self._history]

    def push(self, path: str, state: Optional[Mapping[str, Any]] = None) -> None:
        self._history.append((path, dict(state or {})))

    def replace(self, path: str, state: Optional[Mapping[str, Any]] = None) -> None:
        entry = (path, dict(state or {}))
        self._history[-1] = entry
        self.replace_calls.append(entry)
