"""
===============================================================================
TARJETA CRC — application/collections.py
===============================================================================

Módulo:
    Persistent Collection Store (CartStore, WishlistStore)

Responsabilidades:
    - Mantener colecciones ordenadas por clave de producto (`_id`, si no `id`),
      a lo sumo una línea por clave.
    - Write-through síncrono: cuando una mutación retorna, el durable store
      ya refleja el nuevo estado (memoria y disco nunca divergen).
    - Hidratar desde el durable store al construirse; registro corrupto =>
      colección vacía (warning, nunca fatal).
    - Consultas derivadas (conteos, membresía, total monetario del carrito).

Colaboradores:
    - domain.ports.KeyValueStore (claves `cart` / `wishlist`)
    - infrastructure.storage.records (read_json / write_json)
    - domain.entities (CartEntry / WishlistEntry / product_key)
    - application.listeners (canal de cambios para muchas superficies de UI)

Notas de diseño:
    - Dos stores que comparten una base, no un tipo polimórfico: la wishlist
      no tiene semántica de cantidad.
    - Falla de escritura durable => MutationResult con error y estado en
      memoria SIN cambios.
===============================================================================
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Generic, List, Mapping, TypeVar

from ..crosscutting.exceptions import StorageError
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_storage_corrupt_record
from ..domain.entities import CartEntry, WishlistEntry, product_key
from ..domain.ports import CART_KEY, WISHLIST_KEY, KeyValueStore
from ..domain.results import (
    SUCCESS,
    ErrorCode,
    MutationResult,
    OperationError,
    error_from_exception,
)
from ..infrastructure.storage.records import read_json, write_json
from .listeners import Listeners, Unsubscribe

E = TypeVar("E", CartEntry, WishlistEntry)


def _invalid(message: str) -> MutationResult:
    return MutationResult(error=OperationError(ErrorCode.VALIDATION_ERROR, message))


def _snapshot(item: Mapping[str, Any]) -> dict[str, Any]:
    """R: Copia del producto sin claves de identidad/cantidad."""
    return {k: v for k, v in item.items() if k not in ("_id", "id", "quantity")}


class PersistentCollection(Generic[E]):
    """Base: entradas ordenadas por clave + hidratación + commit write-through."""

    storage_key: str = ""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._entries: Dict[str, E] = {}
        self._listeners: Listeners[List[E]] = Listeners(self.storage_key)
        self._hydrate()

    # ------------------------------------------------------------------
    # Hooks de subclase
    # ------------------------------------------------------------------
    def _entry_from_record(self, record: Mapping[str, Any]) -> E:
        raise NotImplementedError

    def _merge(self, current: E, incoming: E) -> E:
        return current

    # ------------------------------------------------------------------
    # Persistencia
    # ------------------------------------------------------------------
    def _hydrate(self) -> None:
        records = read_json(self._store, self.storage_key, [])
        if not isinstance(records, list):
            logger.warning(
                "Durable collection is not a list, starting empty",
                extra={"key": self.storage_key},
            )
            record_storage_corrupt_record(self.storage_key)
            return

        entries: Dict[str, E] = {}
        for record in records:
            try:
                if not isinstance(record, Mapping):
                    raise ValueError("record is not an object")
                entry = self._entry_from_record(record)
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed collection record",
                    extra={"key": self.storage_key, "error": str(exc)},
                )
                record_storage_corrupt_record(self.storage_key)
                continue
            current = entries.get(entry.product_id)
            entries[entry.product_id] = (
                entry if current is None else self._merge(current, entry)
            )
        self._entries = entries

    def _commit(self, entries: Dict[str, E]) -> MutationResult:
        try:
            write_json(
                self._store,
                self.storage_key,
                [entry.to_record() for entry in entries.values()],
            )
        except StorageError as exc:
            logger.warning(
                "Collection write-through failed, state unchanged",
                extra={"key": self.storage_key, "error": str(exc)},
            )
            return MutationResult(
                error=error_from_exception(exc, "Could not save changes")
            )
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Collection entry is not serializable, state unchanged",
                extra={"key": self.storage_key, "error": str(exc)},
            )
            return _invalid("Product could not be saved")
        self._entries = entries
        self._listeners.notify(self.entries())
        return SUCCESS

    # ------------------------------------------------------------------
    # Operaciones comunes
    # ------------------------------------------------------------------
    def subscribe(self, listener: Callable[[List[E]], None]) -> Unsubscribe:
        return self._listeners.add(listener)

    def entries(self) -> List[E]:
        """Copia en orden de inserción."""
        return list(self._entries.values())

    def contains(self, key: str) -> bool:
        return str(key) in self._entries

    def distinct_count(self) -> int:
        return len(self._entries)

    def remove(self, key: str) -> MutationResult:
        """Quita la línea; clave ausente => no-op (no es error)."""
        key = str(key)
        if key not in self._entries:
            return SUCCESS
        entries = dict(self._entries)
        del entries[key]
        return self._commit(entries)

    def clear(self) -> MutationResult:
        """Vacía la colección y borra el registro durable."""
        try:
            self._store.delete(self.storage_key)
        except StorageError as exc:
            return MutationResult(
                error=error_from_exception(exc, "Could not save changes")
            )
        self._entries = {}
        self._listeners.notify([])
        return SUCCESS


# =============================================================================
# Cart
# =============================================================================


def _decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def unit_price(entry: CartEntry) -> Decimal:
    """Precio unitario aplicable (wholesale vs retail).

    1) selectedPricingType == "wholesale" con wholesale habilitado => wholesalePrice
    2) selectedPricingType == "retail" => price
    3) automático: wholesalePrice si allowWholesale y quantity >= minWholesaleQuantity
    """
    product = entry.product
    wholesale = _decimal(product.get("wholesalePrice"))
    allow_wholesale = bool(product.get("allowWholesale"))
    selected = product.get("selectedPricingType")

    if selected == "wholesale" and allow_wholesale and wholesale > 0:
        return wholesale
    if selected == "retail":
        return _decimal(product.get("price"))

    minimum = _decimal(product.get("minWholesaleQuantity"))
    if allow_wholesale and wholesale > 0 and minimum > 0 and entry.quantity >= minimum:
        return wholesale
    return _decimal(product.get("price"))


class CartStore(PersistentCollection[CartEntry]):
    storage_key = CART_KEY

    def _entry_from_record(self, record: Mapping[str, Any]) -> CartEntry:
        key = product_key(record)
        if key is None:
            raise ValueError("cart record without product id")
        quantity = record.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError("cart record with non-integer quantity")
        return CartEntry(product_id=key, product=_snapshot(record), quantity=quantity)

    def _merge(self, current: CartEntry, incoming: CartEntry) -> CartEntry:
        return current.with_quantity(current.quantity + incoming.quantity)

    def add(self, item: Mapping[str, Any], quantity: int = 1) -> MutationResult:
        """Agrega el producto; si ya existe, incrementa su cantidad."""
        if not isinstance(item, Mapping):
            return _invalid("Product must be an object")
        key = product_key(item)
        if key is None:
            return _invalid("Product has no id")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            return _invalid("Quantity must be at least 1")

        entries = dict(self._entries)
        current = entries.get(key)
        if current is None:
            entries[key] = CartEntry(
                product_id=key, product=_snapshot(item), quantity=quantity
            )
        else:
            entries[key] = current.with_quantity(current.quantity + quantity)
        return self._commit(entries)

    def set_quantity(self, key: str, quantity: int) -> MutationResult:
        """quantity < 1 => remove(key); clave ausente => no-op."""
        key = str(key)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return _invalid("Quantity must be an integer")
        if quantity < 1:
            return self.remove(key)
        current = self._entries.get(key)
        if current is None:
            return SUCCESS
        entries = dict(self._entries)
        entries[key] = current.with_quantity(quantity)
        return self._commit(entries)

    def quantity_of(self, key: str) -> int:
        entry = self._entries.get(str(key))
        return entry.quantity if entry else 0

    def count(self) -> int:
        """Total de unidades (Σ cantidades)."""
        return sum(entry.quantity for entry in self._entries.values())

    def total(self) -> Decimal:
        """Σ unit_price × quantity."""
        return sum(
            (unit_price(entry) * entry.quantity for entry in self._entries.values()),
            Decimal(0),
        )


# =============================================================================
# Wishlist
# =============================================================================


class WishlistStore(PersistentCollection[WishlistEntry]):
    storage_key = WISHLIST_KEY

    def _entry_from_record(self, record: Mapping[str, Any]) -> WishlistEntry:
        key = product_key(record)
        if key is None:
            raise ValueError("wishlist record without product id")
        return WishlistEntry(product_id=key, product=_snapshot(record))

    def add(self, item: Mapping[str, Any]) -> MutationResult:
        """Presencia booleana: si ya está, no-op."""
        if not isinstance(item, Mapping):
            return _invalid("Product must be an object")
        key = product_key(item)
        if key is None:
            return _invalid("Product has no id")
        if key in self._entries:
            return SUCCESS
        entries = dict(self._entries)
        entries[key] = WishlistEntry(product_id=key, product=_snapshot(item))
        return self._commit(entries)

    def toggle(self, item: Mapping[str, Any]) -> MutationResult:
        if not isinstance(item, Mapping):
            return _invalid("Product must be an object")
        key = product_key(item)
        if key is None:
            return _invalid("Product has no id")
        if key in self._entries:
            return self.remove(key)
        return self.add(item)

    def count(self) -> int:
        return len(self._entries)
