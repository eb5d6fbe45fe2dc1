# storefront/repos/cart_repo.py
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from storefront.data.models.cart import CartModel, CartComboModel
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.get_cart_by_user(user_id)
        if cart:
            return cart

        cart = CartModel(user_id=user_id, version=1)
        self.db.add(cart)
        try:
            self.db.commit()
        except IntegrityError:
            # another request created it first (unique user_id), or the user does not exist
            self.db.rollback()
            existing = self.get_cart_by_user(user_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(cart)
        return cart

    def get_cart_item(self, cart: CartModel, item_id: int) -> CartItemModel | None:
        return next((i for i in cart.items if i.id == item_id), None)

    def add_cart_item(self, cart: CartModel, item: CartItemModel) -> CartItemModel:
        item.position = max((i.position for i in cart.items), default=-1) + 1
        cart.items.append(item)
        return item

    def delete_cart_item(self, cart: CartModel, item: CartItemModel) -> None:
        cart.items.remove(item)

    def get_applied_combo(self, cart: CartModel, combo_id: int) -> CartComboModel | None:
        return next((c for c in cart.applied_combos if c.combo_id == combo_id), None)

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # pending line changes go out first, inside the same transaction
        self.db.flush()
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            obj = self.db.get(CartModel, cart_id)
            for key, value in new_data.items():
                set_committed_value(obj, key, value)
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
