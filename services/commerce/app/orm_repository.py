"""
Commerce Service: ORM リポジトリ (PERSISTENCE_PROFILE=orm)

SQLAlchemy ORM のエンティティ経由で読み書きする。
エンティティはセッションの identity map に載るため、
同じリクエスト内で更新した在庫は後続の読み取りにもそのまま反映される。
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import OrderEntity, ProductEntity, UserEntity
from .schemas import Order, Product, User


def to_user(entity: UserEntity) -> User:
    return User(id=entity.id, username=entity.username, email=entity.email)


def to_product(entity: ProductEntity) -> Product:
    return Product(
        id=entity.id,
        name=entity.name,
        description=entity.description,
        price=entity.price,
        stock=entity.stock,
    )


def to_order(entity: OrderEntity) -> Order:
    return Order(
        id=entity.id,
        order_date=entity.order_date,
        user=to_user(entity.user),
        product=to_product(entity.product),
        quantity=entity.quantity,
        status=entity.status,
        total_amount=entity.total_amount,
    )


async def _get_for_update(session: AsyncSession, entity_cls, entity_id: int):
    entity = await session.get(entity_cls, entity_id)
    if entity is None:
        raise LookupError(f"{entity_cls.__tablename__} row {entity_id} does not exist")
    return entity


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_all(self) -> list[User]:
        result = await self.session.execute(select(UserEntity).order_by(UserEntity.id))
        return [to_user(e) for e in result.scalars().all()]

    async def find_by_id(self, user_id: int) -> User | None:
        entity = await self.session.get(UserEntity, user_id)
        return to_user(entity) if entity else None

    async def save(self, user: User) -> User:
        if user.id is None:
            entity = UserEntity(username=user.username, email=user.email)
            self.session.add(entity)
        else:
            entity = await _get_for_update(self.session, UserEntity, user.id)
            entity.username = user.username
            entity.email = user.email
        await self.session.flush()
        return to_user(entity)


class ProductRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_all(self) -> list[Product]:
        result = await self.session.execute(select(ProductEntity).order_by(ProductEntity.id))
        return [to_product(e) for e in result.scalars().all()]

    async def find_by_id(self, product_id: int) -> Product | None:
        entity = await self.session.get(ProductEntity, product_id)
        return to_product(entity) if entity else None

    async def save(self, product: Product) -> Product:
        if product.id is None:
            entity = ProductEntity(
                name=product.name,
                description=product.description,
                price=product.price,
                stock=product.stock,
            )
            self.session.add(entity)
        else:
            entity = await _get_for_update(self.session, ProductEntity, product.id)
            entity.name = product.name
            entity.description = product.description
            entity.price = product.price
            entity.stock = product.stock
        await self.session.flush()
        return to_product(entity)


class OrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _select(self, *criteria) -> list[Order]:
        # user / product は lazy="joined" で同時に読み込まれる
        stmt = select(OrderEntity).where(*criteria).order_by(OrderEntity.id)
        result = await self.session.execute(stmt)
        return [to_order(e) for e in result.scalars().all()]

    async def find_all(self) -> list[Order]:
        return await self._select()

    async def find_by_id(self, order_id: int) -> Order | None:
        entity = await self.session.get(OrderEntity, order_id)
        return to_order(entity) if entity else None

    async def find_by_user_id(self, user_id: int) -> list[Order]:
        return await self._select(OrderEntity.user_id == user_id)

    async def find_by_order_date_between(self, start: datetime, end: datetime) -> list[Order]:
        return await self._select(OrderEntity.order_date.between(start, end))

    async def save(self, order: Order) -> Order:
        if order.id is None:
            entity = OrderEntity(
                order_date=order.order_date,
                user=await _get_for_update(self.session, UserEntity, order.user.id),
                product=await _get_for_update(self.session, ProductEntity, order.product.id),
                quantity=order.quantity,
                status=order.status,
                total_amount=order.total_amount,
            )
            self.session.add(entity)
        else:
            entity = await _get_for_update(self.session, OrderEntity, order.id)
            entity.order_date = order.order_date
            entity.quantity = order.quantity
            entity.status = order.status
            entity.total_amount = order.total_amount
        await self.session.flush()
        return to_order(entity)
