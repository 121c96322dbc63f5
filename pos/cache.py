from __future__ import annotations

import logging
from typing import Optional

from pos.models import Customer, Product
from pos.services.customers import list_customers
from pos.services.products import list_products

logger = logging.getLogger(__name__)


class CatalogCache:
    """
    Active products and customers for one session.

    Lists load on first use and are dropped by ``invalidate()``; every page
    that writes calls it right after the write.
    """

    def __init__(self, conn) -> None:
        self.conn = conn
        self._products: Optional[list[Product]] = None
        self._customers: Optional[list[Customer]] = None

    def products(self) -> list[Product]:
        if self._products is None:
            self._products = list_products(self.conn)
        return self._products

    def customers(self) -> list[Customer]:
        if self._customers is None:
            self._customers = list_customers(self.conn)
        return self._customers

    def product(self, product_id: int) -> Optional[Product]:
        return next((p for p in self.products() if p.id == product_id), None)

    def customer(self, customer_id: int) -> Optional[Customer]:
        return next((c for c in self.customers() if c.id == customer_id), None)

    def invalidate(self, *, products: bool = True, customers: bool = True) -> None:
        if products:
            self._products = None
        if customers:
            self._customers = None
        logger.debug("Catalog cache invalidated (products=%s, customers=%s)", products, customers)


def get_catalog(session_state, conn, key: str = "pos_catalog") -> CatalogCache:
    """Return the session's cache, creating it on first access."""
    cache = session_state.get(key)
    if cache is None or cache.conn is not conn:
        cache = CatalogCache(conn)
        session_state[key] = cache
    return cache
