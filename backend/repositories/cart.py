# backend/repositories/cart.py
from typing import Optional

from sqlalchemy.orm import selectinload

from models.cart import Cart, CartItem
from models.product import Product
from repositories.base import BaseRepository


class CartRepository(BaseRepository[Cart]):
    model = Cart
    label = "Cart"

    def by_token(self, token: str) -> Optional[Cart]:
        return (
            self.query()
            .options(selectinload(Cart.items).selectinload(CartItem.product).selectinload(Product.discounts))
            .filter(Cart.token == token)
            .first()
        )
