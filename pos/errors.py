from __future__ import annotations


class PosError(Exception):
    """Base class for errors raised by the POS services."""


class ValidationError(PosError, ValueError):
    pass


class CustomerRequired(ValidationError):
    def __init__(self, message: str = "Select a customer before a credit sale.") -> None:
        super().__init__(message)


class CheckoutRejected(ValidationError):
    pass


class InsufficientStock(PosError):
    def __init__(self, product_name: str, available: int, requested: int) -> None:
        self.product_name = product_name
        self.available = int(available)
        self.requested = int(requested)
        super().__init__(
            f"Insufficient stock: only {self.available} unit(s) of {product_name} available "
            f"({self.requested} requested)."
        )


class LineNotFound(PosError, KeyError):
    def __str__(self) -> str:
        return f"Ticket line not found: {self.args[0] if self.args else ''}"


class NotFound(PosError, LookupError):
    pass


class RemoteWriteFailure(PosError):
    """A write against the data store failed; nothing was committed."""
