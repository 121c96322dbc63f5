from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pos.utils import money

DEFAULT_MIN_STOCK = 5
DEFAULT_CREDIT_LIMIT = 1000.0
DEFAULT_TAX_RATE = 16.0

PAYMENT_METHODS = ("cash", "card", "credit")
SALE_STATUSES = ("pending", "completed", "cancelled")
MOVEMENT_TYPES = ("entry", "exit", "adjustment", "sale")


def _get(row: Mapping[str, Any], key: str, default: Any = None) -> Any:
    # sqlite3.Row supports dict-like indexing, not .get()
    try:
        v = row[key]
    except (KeyError, IndexError):
        return default
    return default if v is None else v


def _opt_float(v: Any) -> Optional[float]:
    if v is None or v == "":
        return None
    return float(v)


def _opt_int(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    return int(v)


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Category":
        return cls(id=int(row["id"]), name=str(row["name"]), description=_get(row, "description"))


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    sale_price: float
    stock: int = 0
    barcode: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    purchase_price: float = 0.0
    wholesale_price: Optional[float] = None
    wholesale_min_qty: Optional[int] = None
    min_stock: int = DEFAULT_MIN_STOCK
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        # A missing or zero threshold falls back to the default once, here.
        min_stock = _opt_int(_get(row, "min_stock")) or DEFAULT_MIN_STOCK
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            sale_price=float(row["sale_price"]),
            stock=int(_get(row, "stock", 0)),
            barcode=_get(row, "barcode"),
            description=_get(row, "description"),
            category_id=_opt_int(_get(row, "category_id")),
            category_name=_get(row, "category_name"),
            purchase_price=float(_get(row, "purchase_price", 0.0)),
            wholesale_price=_opt_float(_get(row, "wholesale_price")),
            wholesale_min_qty=_opt_int(_get(row, "wholesale_min_qty")),
            min_stock=int(min_stock),
            is_active=bool(_get(row, "is_active", 1)),
        )

    @property
    def has_wholesale_tier(self) -> bool:
        return bool(self.wholesale_price) and bool(self.wholesale_min_qty)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @property
    def restock_needed(self) -> int:
        return max(0, self.min_stock - self.stock)

    @property
    def stock_value(self) -> float:
        return money(self.stock * self.purchase_price)


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    credit_limit: float = DEFAULT_CREDIT_LIMIT
    current_balance: float = 0.0
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Customer":
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            credit_limit=float(_get(row, "credit_limit", DEFAULT_CREDIT_LIMIT)),
            current_balance=float(_get(row, "current_balance", 0.0)),
            phone=_get(row, "phone"),
            email=_get(row, "email"),
            address=_get(row, "address"),
            is_active=bool(_get(row, "is_active", 1)),
        )

    @property
    def available_credit(self) -> float:
        return money(self.credit_limit - self.current_balance)


@dataclass
class TicketLine:
    product: Product
    quantity: int
    unit_price: float
    discount: float = 0.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def subtotal(self) -> float:
        return money(self.quantity * self.unit_price)


@dataclass
class Ticket:
    lines: list[TicketLine] = field(default_factory=list)
    customer: Optional[Customer] = None

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for_product(self, product_id: int) -> Optional[TicketLine]:
        return next((l for l in self.lines if l.product.id == product_id), None)

    def get_line(self, line_id: str) -> Optional[TicketLine]:
        return next((l for l in self.lines if l.id == line_id), None)

    @property
    def item_count(self) -> int:
        return sum(l.quantity for l in self.lines)


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    quantity: int
    unit_price: float
    subtotal: float
    discount: float = 0.0
    sale_id: Optional[int] = None
    product_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SaleItem":
        return cls(
            product_id=int(row["product_id"]),
            quantity=int(row["quantity"]),
            unit_price=float(row["unit_price"]),
            subtotal=float(row["subtotal"]),
            discount=float(_get(row, "discount", 0.0)),
            sale_id=_opt_int(_get(row, "sale_id")),
            product_name=_get(row, "product_name"),
        )


@dataclass(frozen=True)
class Sale:
    subtotal: float
    total: float
    payment_received: float
    change_given: float
    payment_method: str
    is_credit: bool
    customer_id: Optional[int] = None
    discount: float = 0.0
    tax: float = 0.0
    status: str = "completed"
    id: Optional[int] = None
    ticket_number: Optional[int] = None
    created_at: Optional[str] = None
    customer_name: Optional[str] = None
    items: tuple[SaleItem, ...] = ()

    @classmethod
    def from_row(cls, row: Mapping[str, Any], items: tuple[SaleItem, ...] = ()) -> "Sale":
        return cls(
            id=int(row["id"]),
            ticket_number=_opt_int(_get(row, "ticket_number")),
            customer_id=_opt_int(_get(row, "customer_id")),
            customer_name=_get(row, "customer_name"),
            subtotal=float(row["subtotal"]),
            discount=float(_get(row, "discount", 0.0)),
            tax=float(_get(row, "tax", 0.0)),
            total=float(row["total"]),
            payment_received=float(_get(row, "payment_received", 0.0)),
            change_given=float(_get(row, "change_given", 0.0)),
            payment_method=str(row["payment_method"]),
            is_credit=bool(_get(row, "is_credit", 0)),
            status=str(_get(row, "status", "completed")),
            created_at=_get(row, "created_at"),
            items=items,
        )


@dataclass(frozen=True)
class InventoryMovement:
    product_id: int
    movement_type: str
    quantity: int
    previous_stock: int
    new_stock: int
    notes: Optional[str] = None
    reference_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    product_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "InventoryMovement":
        return cls(
            id=int(row["id"]),
            product_id=int(row["product_id"]),
            movement_type=str(row["movement_type"]),
            quantity=int(row["quantity"]),
            previous_stock=int(row["previous_stock"]),
            new_stock=int(row["new_stock"]),
            notes=_get(row, "notes"),
            reference_id=_opt_int(_get(row, "reference_id")),
            created_at=_get(row, "created_at"),
            product_name=_get(row, "product_name"),
        )


@dataclass(frozen=True)
class CustomerBalanceDelta:
    customer_id: int
    previous_balance: float
    new_balance: float

    @property
    def amount(self) -> float:
        return money(self.new_balance - self.previous_balance)


@dataclass(frozen=True)
class CreditPayment:
    customer_id: int
    amount: float
    previous_balance: float
    new_balance: float
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CreditPayment":
        return cls(
            id=int(row["id"]),
            customer_id=int(row["customer_id"]),
            amount=float(row["amount"]),
            previous_balance=float(_get(row, "previous_balance", 0.0)),
            new_balance=float(_get(row, "new_balance", 0.0)),
            notes=_get(row, "notes"),
            created_at=_get(row, "created_at"),
        )


@dataclass(frozen=True)
class BusinessConfig:
    name: str = "My Store"
    address: Optional[str] = None
    phone: Optional[str] = None
    tax_rate: float = DEFAULT_TAX_RATE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BusinessConfig":
        return cls(
            name=str(_get(row, "name", "My Store")),
            address=_get(row, "address"),
            phone=_get(row, "phone"),
            tax_rate=float(_get(row, "tax_rate", DEFAULT_TAX_RATE)),
        )
