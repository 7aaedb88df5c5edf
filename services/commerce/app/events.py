"""
Commerce Service: イベント定義

注文のライフサイクルで発生した事実(イベント)。
コミット後に Redis Pub/Sub の order_events チャネルへ発行する。
イベントは過去形で命名し、不変(immutable)として扱う。
"""

from datetime import datetime

from pydantic import BaseModel

ORDER_EVENTS_CHANNEL = "order_events"


class OrderCreated(BaseModel):
    """注文が作成された(在庫を引き当て済み)"""
    order_id: int
    user_id: int
    product_id: int
    quantity: int
    total_amount: float
    timestamp: datetime


class OrderQuantityUpdated(BaseModel):
    """注文数量が変更された"""
    order_id: int
    product_id: int
    old_quantity: int
    new_quantity: int
    total_amount: float
    timestamp: datetime


class OrderCanceled(BaseModel):
    """注文がキャンセルされた(在庫を戻した)"""
    order_id: int
    product_id: int
    quantity: int
    timestamp: datetime
