"""
===============================================================================
TARJETA CRC — domain/roles.py
===============================================================================

Módulo:
    Role Resolver (roles, jerarquía, capacidades y landing paths)

Responsabilidades:
    - Definir el catálogo de roles (Role) y su jerarquía explícita.
    - Normalizar el rol que llega del servidor (mayúsculas/minúsculas, alias).
    - Decidir acceso por jerarquía: can_access(required, actual).
    - Derivar capacidades (flags) y el landing path por rol.
    - Proveer los links de navegación dependientes del rol (header).

Colaboradores:
    - domain.entities.User: normaliza el rol UNA vez al hidratar la sesión.
    - application.route_guard: consulta can_access / landing_path.
    - application.notifications: solo se activa para ADMIN.

Notas de diseño:
    - Funciones puras: sin I/O, sin estado, testeables como tabla.
    - La jerarquía vive en ROLE_RANK (no en comparaciones encadenadas).
    - Un rol desconocido NUNCA rompe: cae a GUEST y sigue el camino de denegación.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union


class Role(str, Enum):
    """Roles soportados (forma canónica: mayúsculas)."""

    GUEST = "GUEST"
    BUYER = "BUYER"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


# R: ADMIN ⊇ VENDOR ⊇ BUYER ⊇ GUEST.
ROLE_RANK: dict[Role, int] = {
    Role.GUEST: 0,
    Role.BUYER: 1,
    Role.VENDOR: 2,
    Role.ADMIN: 3,
}

# R: alias que el servidor (o versiones viejas del cliente) pueden enviar.
ROLE_ALIASES: dict[str, Role] = {
    "ADMINISTRATOR": Role.ADMIN,
    "SELLER": Role.VENDOR,
    "USER": Role.BUYER,
    "CUSTOMER": Role.BUYER,
}

RoleLike = Union[Role, str, None]


def resolve(role: RoleLike) -> Role:
    """Normaliza un rol crudo a su forma canónica.

    - None / vacío => GUEST
    - case-insensitive, ignora espacios
    - alias conocidos => rol canónico
    - cualquier otro valor => GUEST
    """
    if isinstance(role, Role):
        return role
    if not isinstance(role, str):
        return Role.GUEST

    raw = role.strip().upper()
    if not raw:
        return Role.GUEST

    try:
        return Role(raw)
    except ValueError:
        return ROLE_ALIASES.get(raw, Role.GUEST)


def rank(role: RoleLike) -> int:
    return ROLE_RANK[resolve(role)]


def can_access(required: Union[RoleLike, Iterable[RoleLike]], actual: RoleLike) -> bool:
    """True si `actual` está en o por encima del mínimo de `required`.

    Semántica:
        - `required` puede ser un rol o una colección de roles.
        - Colección vacía => ruta pública (siempre True).
        - Una colección se satisface con su rol mínimo: ['VENDOR', 'ADMIN']
          deja pasar a VENDOR y ADMIN, nunca a BUYER.
    """
    if required is None or isinstance(required, (Role, str)):
        required_roles = [required]
    else:
        required_roles = list(required)

    if not required_roles:
        return True

    minimum = min(rank(r) for r in required_roles)
    return rank(actual) >= minimum


@dataclass(frozen=True, slots=True)
class LandingPaths:
    """Destinos por rol (configurables vía Settings)."""

    home: str = "/"
    admin: str = "/admin/dashboard"
    vendor: str = "/vendor/dashboard"


DEFAULT_LANDING_PATHS = LandingPaths()


def landing_path(role: RoleLike, paths: LandingPaths = DEFAULT_LANDING_PATHS) -> str:
    """ADMIN => admin home, VENDOR => vendor home, resto => home público."""
    resolved = resolve(role)
    if resolved == Role.ADMIN:
        return paths.admin
    if resolved == Role.VENDOR:
        return paths.vendor
    return paths.home


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Flags de capacidad derivados del rol (para UI y chequeos rápidos)."""

    can_create_products: bool = False
    can_view_vendor_dashboard: bool = False
    can_view_admin_dashboard: bool = False
    can_process_payments: bool = False
    can_manage_users: bool = False
    can_manage_vendors: bool = False
    can_manage_categories: bool = False
    can_manage_banners: bool = False
    can_moderate: bool = False


def capabilities(role: RoleLike) -> Capabilities:
    resolved = resolve(role)
    vendor_or_above = can_access(Role.VENDOR, resolved)
    admin = resolved == Role.ADMIN
    return Capabilities(
        can_create_products=vendor_or_above,
        can_view_vendor_dashboard=vendor_or_above,
        can_view_admin_dashboard=admin,
        can_process_payments=admin,
        can_manage_users=admin,
        can_manage_vendors=admin,
        can_manage_categories=admin,
        can_manage_banners=vendor_or_above,
        can_moderate=admin,
    )


def can_manage_resource(
    role: RoleLike, user_id: str | None, resource_owner_id: str | None
) -> bool:
    """Admin gestiona todo; el resto solo sus propios recursos."""
    if not user_id:
        return False
    if resolve(role) == Role.ADMIN:
        return True
    return resource_owner_id is not None and user_id == resource_owner_id


@dataclass(frozen=True, slots=True)
class NavLink:
    label: str
    path: str


def header_links(
    role: RoleLike,
    *,
    login_path: str = "/login",
    register_path: str = "/register",
    paths: LandingPaths = DEFAULT_LANDING_PATHS,
) -> list[NavLink]:
    """Links de navegación del header según rol."""
    resolved = resolve(role)
    if resolved == Role.GUEST:
        return [NavLink("Login", login_path), NavLink("Register", register_path)]
    if resolved == Role.ADMIN:
        return [NavLink("Admin Dashboard", landing_path(resolved, paths))]
    if resolved == Role.VENDOR:
        return [NavLink("Vendor Dashboard", landing_path(resolved, paths))]
    return [NavLink("Profile", "/profile"), NavLink("Orders", "/orders")]
