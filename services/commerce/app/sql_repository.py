"""
Commerce Service: 手書き SQL リポジトリ (PERSISTENCE_PROFILE=sql)

ORM を使わず、SQL を text() で直接発行する。
ORM リポジトリと同じテーブル・同じ振る舞いになるように実装している。

日時は DateTime 型でバインドする。SQLite では文字列として保存されるため、
ORM と同じ書式で比較されるようにする必要がある。
"""

from datetime import datetime

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from .schemas import Order, OrderStatus, Product, User

ORDER_SELECT = """
    SELECT o.id, o.order_date, o.quantity, o.status, o.total_amount,
           u.id AS user_id, u.username, u.email,
           p.id AS product_id, p.name AS product_name, p.description,
           p.price, p.stock
    FROM orders o
    JOIN users u ON u.id = o.user_id
    JOIN products p ON p.id = o.product_id
"""


def _as_datetime(value) -> datetime:
    # SQLite からは文字列で返ってくる
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _user_row(row) -> User:
    return User(id=row.id, username=row.username, email=row.email)


def _product_row(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        price=float(row.price),
        stock=row.stock,
    )


def _order_row(row) -> Order:
    return Order(
        id=row.id,
        order_date=_as_datetime(row.order_date),
        user=User(id=row.user_id, username=row.username, email=row.email),
        product=Product(
            id=row.product_id,
            name=row.product_name,
            description=row.description,
            price=float(row.price),
            stock=row.stock,
        ),
        quantity=row.quantity,
        status=OrderStatus(row.status),
        total_amount=float(row.total_amount),
    )


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_all(self) -> list[User]:
        result = await self.session.execute(
            text("SELECT id, username, email FROM users ORDER BY id"),
        )
        return [_user_row(row) for row in result.fetchall()]

    async def find_by_id(self, user_id: int) -> User | None:
        result = await self.session.execute(
            text("SELECT id, username, email FROM users WHERE id = :id"),
            {"id": user_id},
        )
        row = result.fetchone()
        return _user_row(row) if row else None

    async def save(self, user: User) -> User:
        params = {"username": user.username, "email": user.email}
        if user.id is None:
            result = await self.session.execute(
                text("""
                    INSERT INTO users (username, email)
                    VALUES (:username, :email)
                    RETURNING id
                """),
                params,
            )
            return user.model_copy(update={"id": result.scalar_one()})

        await self.session.execute(
            text("UPDATE users SET username = :username, email = :email WHERE id = :id"),
            {**params, "id": user.id},
        )
        return user


class ProductRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_all(self) -> list[Product]:
        result = await self.session.execute(
            text("SELECT id, name, description, price, stock FROM products ORDER BY id"),
        )
        return [_product_row(row) for row in result.fetchall()]

    async def find_by_id(self, product_id: int) -> Product | None:
        result = await self.session.execute(
            text("SELECT id, name, description, price, stock FROM products WHERE id = :id"),
            {"id": product_id},
        )
        row = result.fetchone()
        return _product_row(row) if row else None

    async def save(self, product: Product) -> Product:
        params = {
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "stock": product.stock,
        }
        if product.id is None:
            result = await self.session.execute(
                text("""
                    INSERT INTO products (name, description, price, stock)
                    VALUES (:name, :description, :price, :stock)
                    RETURNING id
                """),
                params,
            )
            return product.model_copy(update={"id": result.scalar_one()})

        await self.session.execute(
            text("""
                UPDATE products
                SET name = :name, description = :description, price = :price, stock = :stock
                WHERE id = :id
            """),
            {**params, "id": product.id},
        )
        return product


class OrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_all(self) -> list[Order]:
        result = await self.session.execute(text(ORDER_SELECT + " ORDER BY o.id"))
        return [_order_row(row) for row in result.fetchall()]

    async def find_by_id(self, order_id: int) -> Order | None:
        result = await self.session.execute(
            text(ORDER_SELECT + " WHERE o.id = :id"),
            {"id": order_id},
        )
        row = result.fetchone()
        return _order_row(row) if row else None

    async def find_by_user_id(self, user_id: int) -> list[Order]:
        result = await self.session.execute(
            text(ORDER_SELECT + " WHERE o.user_id = :user_id ORDER BY o.id"),
            {"user_id": user_id},
        )
        return [_order_row(row) for row in result.fetchall()]

    async def find_by_order_date_between(self, start: datetime, end: datetime) -> list[Order]:
        stmt = text(
            ORDER_SELECT + " WHERE o.order_date BETWEEN :start AND :end ORDER BY o.id"
        ).bindparams(
            bindparam("start", type_=DateTime()),
            bindparam("end", type_=DateTime()),
        )
        result = await self.session.execute(stmt, {"start": start, "end": end})
        return [_order_row(row) for row in result.fetchall()]

    async def save(self, order: Order) -> Order:
        params = {
            "order_date": order.order_date,
            "quantity": order.quantity,
            "status": order.status.value,
            "total_amount": order.total_amount,
        }
        if order.id is None:
            stmt = text("""
                INSERT INTO orders
                    (order_date, user_id, product_id, quantity, status, total_amount)
                VALUES
                    (:order_date, :user_id, :product_id, :quantity, :status, :total_amount)
                RETURNING id
            """).bindparams(bindparam("order_date", type_=DateTime()))
            result = await self.session.execute(
                stmt,
                {**params, "user_id": order.user.id, "product_id": order.product.id},
            )
            return order.model_copy(update={"id": result.scalar_one()})

        stmt = text("""
            UPDATE orders
            SET order_date = :order_date, quantity = :quantity,
                status = :status, total_amount = :total_amount
            WHERE id = :id
        """).bindparams(bindparam("order_date", type_=DateTime()))
        await self.session.execute(stmt, {**params, "id": order.id})
        return order
