"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la Capa de Dominio (API pública del dominio)

Responsabilidades:
    - Centralizar exports para imports limpios en application/container.
    - Mantener estable el “surface area” del dominio.

Colaboradores:
    - domain.entities: User, SessionSnapshot, Notification, líneas de colección
    - domain.roles: Role Resolver
    - domain.ports: puertos (KeyValueStore, Navigator, gateways)
    - domain.results: resultados tipados

Reglas:
    - Solo re-exporta contratos/entidades del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .entities import (
    CartEntry,
    Notification,
    NotificationType,
    SessionSnapshot,
    SessionStatus,
    User,
    WishlistEntry,
    product_key,
)
from .ports import (
    AuthGateway,
    CredentialHolder,
    KeyValueStore,
    Navigator,
    NotificationGateway,
)
from .results import (
    SUCCESS,
    ErrorCode,
    MutationResult,
    OperationError,
    SessionResult,
    error_from_exception,
)
from .roles import (
    Capabilities,
    LandingPaths,
    NavLink,
    Role,
    can_access,
    can_manage_resource,
    capabilities,
    header_links,
    landing_path,
    resolve,
)

__all__ = [
    # Entities
    "CartEntry",
    "Notification",
    "NotificationType",
    "SessionSnapshot",
    "SessionStatus",
    "User",
    "WishlistEntry",
    "product_key",
    # Ports
    "AuthGateway",
    "CredentialHolder",
    "KeyValueStore",
    "Navigator",
    "NotificationGateway",
    # Results
    "SUCCESS",
    "ErrorCode",
    "MutationResult",
    "OperationError",
    "SessionResult",
    "error_from_exception",
    # Roles
    "Capabilities",
    "LandingPaths",
    "NavLink",
    "Role",
    "can_access",
    "can_manage_resource",
    "capabilities",
    "header_links",
    "landing_path",
    "resolve",
]
