"""
Commerce Service: FastAPI エントリーポイント

ユーザー・商品・注文の REST API。
コントローラ(エンドポイント)はリクエストをサービス呼び出しに変換するだけで、
業務ルールは持たない。

  ┌──────────┐     ┌──────────────┐     ┌────────────────────┐
  │ main.py  │────▶│ services.py  │────▶│ orm_repository  or │
  │ (HTTP)   │     │ (業務ルール) │     │ sql_repository     │
  └──────────┘     └──────────────┘     └────────────────────┘

永続化の実装は PERSISTENCE_PROFILE (orm / sql) で切り替える。
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from . import config
from .exceptions import InvalidArgumentError, ResourceNotFoundError
from .models import Base
from .repository import Repositories, build_repositories
from .schemas import Order, Product, ProductCreate, User, UserCreate
from .services import OrderService, ProductService, UserService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(config.DATABASE_URL, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    if config.CREATE_SCHEMA:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if config.REDIS_URL:
        redis_pool = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    logger.info("Commerce service started (persistence=%s)", config.PERSISTENCE_PROFILE)
    yield
    if redis_pool is not None:
        await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Commerce Service", lifespan=lifespan)


# ── Exception Handlers ───────────────────────────

@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ── Dependencies ─────────────────────────────────

async def get_session() -> AsyncIterator[AsyncSession]:
    # コミットされずに閉じたセッションはロールバックされる
    async with async_session() as session:
        yield session


def get_repositories(session: AsyncSession = Depends(get_session)) -> Repositories:
    return build_repositories(session, config.PERSISTENCE_PROFILE)


def get_user_service(repos: Repositories = Depends(get_repositories)) -> UserService:
    return UserService(repos)


def get_product_service(repos: Repositories = Depends(get_repositories)) -> ProductService:
    return ProductService(repos)


def get_order_service(repos: Repositories = Depends(get_repositories)) -> OrderService:
    return OrderService(repos, redis_pool)


# ── Users ────────────────────────────────────────

@app.get("/users", response_model=list[User])
async def get_all_users(service: UserService = Depends(get_user_service)):
    return await service.get_all_users()


@app.get("/users/{user_id}", response_model=User)
async def get_user_by_id(user_id: int, service: UserService = Depends(get_user_service)):
    return await service.get_user_by_id(user_id)


@app.post("/users", response_model=User)
async def create_user(req: UserCreate, service: UserService = Depends(get_user_service)):
    return await service.create_user(req)


# ── Products ─────────────────────────────────────

@app.get("/products", response_model=list[Product])
async def get_all_products(service: ProductService = Depends(get_product_service)):
    return await service.get_all_products()


@app.get("/products/{product_id}", response_model=Product)
async def get_product_by_id(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.get_product_by_id(product_id)


@app.post("/products", response_model=Product)
async def create_product(req: ProductCreate, service: ProductService = Depends(get_product_service)):
    return await service.create_product(req)


# ── Orders ───────────────────────────────────────
# /orders/date と /orders/user/{id} は /orders/{id} より先に登録する

@app.get("/orders", response_model=list[Order])
async def get_all_orders(service: OrderService = Depends(get_order_service)):
    return await service.get_all_orders()


@app.get("/orders/date", response_model=list[Order])
async def get_orders_by_date_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    service: OrderService = Depends(get_order_service),
):
    """注文日時が [startDate, endDate] に含まれる注文 (ISO 形式のローカル日時)"""
    return await service.get_orders_by_date_range(start_date, end_date)


@app.get("/orders/user/{user_id}", response_model=list[Order])
async def get_orders_by_user_id(user_id: int, service: OrderService = Depends(get_order_service)):
    return await service.get_orders_by_user_id(user_id)


@app.get("/orders/{order_id}", response_model=Order)
async def get_order_by_id(order_id: int, service: OrderService = Depends(get_order_service)):
    return await service.get_order_by_id(order_id)


@app.post("/orders", response_model=Order)
async def create_order(
    user_id: int = Query(..., alias="userId"),
    product_id: int = Query(..., alias="productId"),
    quantity: int = Query(...),
    service: OrderService = Depends(get_order_service),
):
    return await service.create_order(user_id, product_id, quantity)


@app.delete("/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return await service.cancel_order(order_id)


@app.put("/orders/{order_id}/quantity", response_model=Order)
async def update_order_quantity(
    order_id: int,
    new_quantity: int = Query(..., alias="newQuantity"),
    service: OrderService = Depends(get_order_service),
):
    return await service.update_order_quantity(order_id, new_quantity)


@app.get("/orders/{order_id}/totalAmount", response_model=float)
async def calculate_total_amount(order_id: int, service: OrderService = Depends(get_order_service)):
    return await service.calculate_total_amount(order_id)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "commerce-service"}
