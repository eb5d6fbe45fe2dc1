# storefront/repos/order_repo.py
from sqlalchemy import select, update, func
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from storefront.data.models.order import OrderModel
from storefront.data.models.webhook_event import WebhookEventModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.order_id == order_id)
        ).scalar_one_or_none()

    def get_by_idempotency_key(self, key: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.idempotency_key == key)
        ).scalar_one_or_none()

    def get_by_gateway_order_id(self, gateway_order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.gateway_order_id == gateway_order_id)
        ).scalar_one_or_none()

    def list_user_orders(self, user_id: int, status: str | None, offset: int, limit: int):
        query = select(OrderModel).where(OrderModel.user_id == user_id)
        count_query = select(func.count(OrderModel.id)).where(OrderModel.user_id == user_id)
        if status:
            query = query.where(OrderModel.status == status)
            count_query = count_query.where(OrderModel.status == status)

        orders = self.db.execute(
            query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).offset(offset).limit(limit)
        ).scalars().all()
        total = self.db.execute(count_query).scalar_one()
        return orders, total

    def update_order_version(self, order_pk: int, old_version: int, new_data: dict) -> int:
        self.db.flush()
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_pk, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            obj = self.db.get(OrderModel, order_pk)
            for key, value in new_data.items():
                set_committed_value(obj, key, value)
        return result.rowcount

    def webhook_event_seen(self, event_id: str) -> bool:
        return self.db.execute(
            select(WebhookEventModel.id).where(WebhookEventModel.event_id == event_id)
        ).first() is not None

    def record_webhook_event(self, event_id: str, event: str, order_id: str | None) -> None:
        self.db.add(WebhookEventModel(event_id=event_id, event=event, order_id=order_id))

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
