"""
Commerce Service: サービス層

UserService / ProductService は単純な CRUD と入力チェック。
OrderService が注文ライフサイクルのルールを担う:

  - 注文作成:   在庫を引き当てる (stock -= quantity)
  - 数量変更:   差分だけ在庫を増減する (PENDING のみ)
  - キャンセル: 在庫を戻す (PENDING のみ)
  - 合計金額:   price × quantity を注文に保存する

検証はすべて変更の前に行うため、例外が発生した場合は
何も書き込まれない。書き込みは最後に1回だけコミットする。
"""

import json
import logging
import re
from datetime import datetime

import redis.asyncio as aioredis
from pydantic import BaseModel

from .events import ORDER_EVENTS_CHANNEL, OrderCanceled, OrderCreated, OrderQuantityUpdated
from .exceptions import InvalidArgumentError, ResourceNotFoundError
from .repository import Repositories
from .schemas import Order, OrderStatus, Product, ProductCreate, User, UserCreate

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@(.+)$")


class UserService:
    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    async def get_all_users(self) -> list[User]:
        return await self.repos.users.find_all()

    async def get_user_by_id(self, user_id: int) -> User:
        user = await self.repos.users.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    async def create_user(self, req: UserCreate) -> User:
        if not req.username or not req.username.strip():
            raise InvalidArgumentError("Username is required.")
        if not req.email or not req.email.strip():
            raise InvalidArgumentError("Email is required.")
        if not EMAIL_PATTERN.match(req.email):
            raise InvalidArgumentError("Invalid email format.")

        user = await self.repos.users.save(User(username=req.username, email=req.email))
        await self.repos.commit()
        logger.info("Created user %s (%s)", user.id, user.username)
        return user


class ProductService:
    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    async def get_all_products(self) -> list[Product]:
        return await self.repos.products.find_all()

    async def get_product_by_id(self, product_id: int) -> Product:
        product = await self.repos.products.find_by_id(product_id)
        if product is None:
            raise ResourceNotFoundError("Product", product_id)
        return product

    async def create_product(self, req: ProductCreate) -> Product:
        product = await self.repos.products.save(
            Product(
                name=req.name,
                description=req.description,
                price=req.price,
                stock=req.stock,
            )
        )
        await self.repos.commit()
        logger.info("Created product %s (%s, stock=%s)", product.id, product.name, product.stock)
        return product


class OrderService:
    """
    注文ライフサイクルのサービス

    リポジトリの実装 (orm / sql) には依存しない。
    redis が渡された場合は、コミット後にイベントを発行する。
    """

    def __init__(self, repos: Repositories, redis: aioredis.Redis | None = None) -> None:
        self.repos = repos
        self.redis = redis

    # ── Query ────────────────────────────────────

    async def get_all_orders(self) -> list[Order]:
        return await self.repos.orders.find_all()

    async def get_order_by_id(self, order_id: int) -> Order:
        order = await self.repos.orders.find_by_id(order_id)
        if order is None:
            raise ResourceNotFoundError("Order", order_id)
        return order

    async def get_orders_by_user_id(self, user_id: int) -> list[Order]:
        # 注文が0件なのはエラーではない。ユーザー自体が無い場合のみ 404
        if await self.repos.users.find_by_id(user_id) is None:
            raise ResourceNotFoundError("User", user_id)
        return await self.repos.orders.find_by_user_id(user_id)

    async def get_orders_by_date_range(self, start: datetime, end: datetime) -> list[Order]:
        """start <= order_date <= end (両端を含む)"""
        return await self.repos.orders.find_by_order_date_between(start, end)

    async def calculate_total_amount(self, order_id: int) -> float:
        order = await self.get_order_by_id(order_id)
        return order.total_amount

    # ── Command ──────────────────────────────────

    async def create_order(self, user_id: int, product_id: int, quantity: int) -> Order:
        """
        注文作成

        1. ユーザーと商品の存在を確認
        2. 在庫が足りるか確認
        3. 在庫を減らし、PENDING の注文を保存
        """
        _check_quantity(quantity)

        user = await self.repos.users.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        product = await self.repos.products.find_by_id(product_id)
        if product is None:
            raise ResourceNotFoundError("Product", product_id)

        if product.stock < quantity:
            logger.warning(
                "Rejected order: product %s has %s in stock, %s requested",
                product_id, product.stock, quantity,
            )
            raise InvalidArgumentError(f"Insufficient stock for product id {product_id}")

        product.stock -= quantity
        product = await self.repos.products.save(product)

        order = await self.repos.orders.save(
            Order(
                order_date=datetime.now(),
                user=user,
                product=product,
                quantity=quantity,
                status=OrderStatus.PENDING,
                total_amount=product.price * quantity,
            )
        )
        await self.repos.commit()
        logger.info(
            "Created order %s: user=%s product=%s quantity=%s total=%s",
            order.id, user_id, product_id, quantity, order.total_amount,
        )

        await self._publish("OrderCreated", OrderCreated(
            order_id=order.id,
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            total_amount=order.total_amount,
            timestamp=order.order_date,
        ))
        return order

    async def update_order_quantity(self, order_id: int, new_quantity: int) -> Order:
        """
        数量変更 (PENDING のみ)

        delta = new_quantity - 現在の数量
          delta > 0: 在庫から delta を引き当てる (不足ならエラー)
          delta < 0: 在庫に -delta を戻す
        """
        _check_quantity(new_quantity)

        order = await self.get_order_by_id(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidArgumentError("Only pending orders can be updated.")

        product = order.product
        old_quantity = order.quantity
        delta = new_quantity - old_quantity
        if delta > 0 and product.stock < delta:
            logger.warning(
                "Rejected quantity update on order %s: need %s more, %s in stock",
                order_id, delta, product.stock,
            )
            raise InvalidArgumentError("Insufficient stock to increase quantity.")

        product.stock -= delta
        product = await self.repos.products.save(product)

        order.product = product
        order.quantity = new_quantity
        order.total_amount = product.price * new_quantity
        order = await self.repos.orders.save(order)
        await self.repos.commit()
        logger.info(
            "Updated order %s quantity %s -> %s (stock=%s)",
            order_id, old_quantity, new_quantity, product.stock,
        )

        await self._publish("OrderQuantityUpdated", OrderQuantityUpdated(
            order_id=order_id,
            product_id=product.id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            total_amount=order.total_amount,
            timestamp=datetime.now(),
        ))
        return order

    async def cancel_order(self, order_id: int) -> Order:
        """キャンセル (PENDING のみ)。注文数量ぶんの在庫を戻す。"""
        order = await self.get_order_by_id(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidArgumentError("Only pending orders can be canceled.")

        product = order.product
        product.stock += order.quantity
        product = await self.repos.products.save(product)

        order.product = product
        order.status = OrderStatus.CANCELED
        order = await self.repos.orders.save(order)
        await self.repos.commit()
        logger.info("Canceled order %s, restored %s to product %s", order_id, order.quantity, product.id)

        await self._publish("OrderCanceled", OrderCanceled(
            order_id=order_id,
            product_id=product.id,
            quantity=order.quantity,
            timestamp=datetime.now(),
        ))
        return order

    async def _publish(self, event_type: str, event: BaseModel) -> None:
        """Redis Pub/Sub でイベントを発行する。コミット済みの操作は失敗させない。"""
        if self.redis is None:
            return
        try:
            await self.redis.publish(ORDER_EVENTS_CHANNEL, json.dumps({
                "event_type": event_type,
                "data": event.model_dump(mode="json"),
            }))
        except Exception:
            logger.exception("Failed to publish %s", event_type)


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise InvalidArgumentError("Quantity must be greater than zero.")
