# Cart storage

from .carts import CartStore, CartError, EntryNotFound, InvalidQuantity, clamp_quantity

__all__ = [
    "CartStore",
    "CartError",
    "EntryNotFound",
    "InvalidQuantity",
    "clamp_quantity",
]
