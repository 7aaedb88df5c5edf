"""
Commerce Service: リポジトリの契約

永続化の実装は2種類ある:
  - orm: SQLAlchemy ORM のエンティティを使う (orm_repository)
  - sql: 手書きの SQL を text() で発行する (sql_repository)

サービス層はどちらの実装が使われているかを知らない。
どちらも検索で見つからない場合は例外ではなく None を返す。
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from .schemas import Order, Product, User

PROFILES = ("orm", "sql")


class UserRepository(Protocol):
    async def find_all(self) -> list[User]: ...

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def save(self, user: User) -> User: ...


class ProductRepository(Protocol):
    async def find_all(self) -> list[Product]: ...

    async def find_by_id(self, product_id: int) -> Product | None: ...

    async def save(self, product: Product) -> Product: ...


class OrderRepository(Protocol):
    async def find_all(self) -> list[Order]: ...

    async def find_by_id(self, order_id: int) -> Order | None: ...

    async def save(self, order: Order) -> Order: ...

    async def find_by_user_id(self, user_id: int) -> list[Order]: ...

    async def find_by_order_date_between(
        self, start: datetime, end: datetime
    ) -> list[Order]: ...


@dataclass
class Repositories:
    """1リクエスト分のリポジトリ。同じセッション(トランザクション)を共有する。"""
    session: AsyncSession
    users: UserRepository
    products: ProductRepository
    orders: OrderRepository

    async def commit(self) -> None:
        await self.session.commit()


def build_repositories(session: AsyncSession, profile: str) -> Repositories:
    """PERSISTENCE_PROFILE に応じた実装を組み立てる。"""
    if profile == "orm":
        from . import orm_repository as impl
    elif profile == "sql":
        from . import sql_repository as impl
    else:
        raise ValueError(f"Unknown persistence profile: {profile!r} (expected one of {PROFILES})")

    return Repositories(
        session=session,
        users=impl.UserRepository(session),
        products=impl.ProductRepository(session),
        orders=impl.OrderRepository(session),
    )
