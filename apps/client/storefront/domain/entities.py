"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del cliente (sesión, usuario, notificaciones, líneas de colección)

Responsabilidades:
    - Definir los “shapes” de datos que circulan entre stores y UI.
    - Hidratar entidades desde payloads del servidor (from_payload) de forma
      tolerante a variantes de naming (_id / id, camelCase / snake_case).
    - Normalizar el rol en el borde (User.from_payload), una sola vez.

Colaboradores:
    - domain.roles: Role / resolve.
    - application.*: consumen estas entidades.

Notas:
    - Entidades inmutables (frozen): cada mutación produce una instancia nueva.
    - Payload inválido => ValueError (el caller decide cómo degradar).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from .roles import Role, resolve


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def product_key(item: Mapping[str, Any]) -> str | None:
    """Clave única de producto: `_id`, si no `id`."""
    value = _first(item, "_id", "id")
    if value is None:
        return None
    key = str(value).strip()
    return key or None


# =============================================================================
# Usuario / Sesión
# =============================================================================


@dataclass(frozen=True, slots=True)
class User:
    """Snapshot del usuario autenticado."""

    id: str
    name: str
    email: str
    role: Role
    phone: str | None = None
    profile_image: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "User":
        if not isinstance(payload, Mapping):
            raise ValueError("user payload must be an object")

        user_id = _first(payload, "_id", "id")
        email = _first(payload, "email")
        if user_id is None or not str(user_id).strip():
            raise ValueError("user payload without id")
        if not isinstance(email, str) or not email.strip():
            raise ValueError("user payload without email")

        name = _first(payload, "name", "fullName", "username") or ""
        phone = _first(payload, "phone")
        image = _first(payload, "profileImage", "profile_image", "avatar")

        return cls(
            id=str(user_id).strip(),
            name=str(name),
            email=email.strip(),
            role=resolve(_first(payload, "role")),
            phone=str(phone) if phone is not None else None,
            profile_image=str(image) if image is not None else None,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }
        if self.phone is not None:
            payload["phone"] = self.phone
        if self.profile_image is not None:
            payload["profileImage"] = self.profile_image
        return payload


class SessionStatus(str, Enum):
    RESOLVING = "RESOLVING"
    AUTHENTICATED = "AUTHENTICATED"
    ANONYMOUS = "ANONYMOUS"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Estado publicado por el SessionManager.

    Invariante: AUTHENTICATED <=> token presente y user no nulo.
    """

    status: SessionStatus
    token: str | None = None
    user: User | None = None

    def __post_init__(self) -> None:
        authenticated = self.token is not None and self.user is not None
        if (self.status == SessionStatus.AUTHENTICATED) != authenticated:
            raise ValueError("AUTHENTICATED requires both token and user")

    @property
    def role(self) -> Role:
        return self.user.role if self.user else Role.GUEST


# =============================================================================
# Notificaciones (admin)
# =============================================================================


class NotificationType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    USER_REGISTERED = "USER_REGISTERED"
    VENDOR_REGISTERED = "VENDOR_REGISTERED"
    PRODUCT_PUBLISHED = "PRODUCT_PUBLISHED"
    PRODUCT_DELETED = "PRODUCT_DELETED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    LOW_STOCK = "LOW_STOCK"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> "NotificationType":
        if not isinstance(value, str):
            return cls.OTHER
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.OTHER


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        # R: sufijo "Z" => "+00:00".
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class Notification:
    id: str
    type: NotificationType
    title: str
    message: str
    read: bool = False
    created_at: datetime | None = None
    raw_type: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "Notification":
        if not isinstance(payload, Mapping):
            raise ValueError("notification payload must be an object")
        notification_id = _first(payload, "_id", "id")
        if notification_id is None:
            raise ValueError("notification payload without id")
        raw_type = payload.get("type")
        return cls(
            id=str(notification_id),
            type=NotificationType.parse(raw_type),
            title=str(payload.get("title") or ""),
            message=str(payload.get("message") or ""),
            read=bool(payload.get("read", False)),
            created_at=_parse_datetime(_first(payload, "createdAt", "created_at")),
            raw_type=str(raw_type or ""),
        )

    def mark_read(self) -> "Notification":
        return Notification(
            id=self.id,
            type=self.type,
            title=self.title,
            message=self.message,
            read=True,
            created_at=self.created_at,
            raw_type=self.raw_type,
        )


# =============================================================================
# Líneas de colección (cart / wishlist)
# =============================================================================


@dataclass(frozen=True, slots=True)
class WishlistEntry:
    """Línea de wishlist: snapshot del producto, sin cantidad."""

    product_id: str
    product: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        record = dict(self.product)
        record["_id"] = self.product_id
        return record


@dataclass(frozen=True, slots=True)
class CartEntry:
    """Línea de carrito. Invariante: quantity >= 1."""

    product_id: str
    product: dict[str, Any] = field(default_factory=dict)
    quantity: int = 1

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("cart quantity must be >= 1")

    def with_quantity(self, quantity: int) -> "CartEntry":
        return CartEntry(
            product_id=self.product_id, product=self.product, quantity=quantity
        )

    def to_record(self) -> dict[str, Any]:
        record = dict(self.product)
        record["_id"] = self.product_id
        record["quantity"] = self.quantity
        return record
