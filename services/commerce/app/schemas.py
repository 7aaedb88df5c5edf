"""
Commerce Service: データレコード

サービス層とリポジトリ層でやり取りするドメインのレコード。
ORM 実装と手書き SQL 実装のどちらも、この型に変換して返す。

JSON では camelCase (orderDate, totalAmount) で表現する。
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    """
    注文ステータス

    状態遷移:
        PENDING → CANCELED   (cancel_order)
        PENDING → COMPLETED  (遷移させる操作は存在しない)
    CANCELED / COMPLETED は終端状態。
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class User(Record):
    id: int | None = None
    username: str
    email: str


class Product(Record):
    id: int | None = None
    name: str
    description: str | None = None
    price: float
    stock: int


class Order(Record):
    """注文。total_amount は計算せず、保存された値をそのまま返す。"""
    id: int | None = None
    order_date: datetime
    user: User
    product: Product
    quantity: int
    status: OrderStatus
    total_amount: float


# ── Request Models ───────────────────────────────

class UserCreate(Record):
    # 必須チェックは UserService で行い、メッセージを固定する
    username: str | None = None
    email: str | None = None


class ProductCreate(Record):
    name: str = Field(..., min_length=1)
    description: str | None = None
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
