"""
Commerce Service: 設定

各サービスと同じく環境変数から設定を読み込む。
PERSISTENCE_PROFILE で永続化の実装 (ORM / 手書き SQL) を切り替える。
"""

import os

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./commerce.db")
REDIS_URL = os.environ.get("REDIS_URL")
PERSISTENCE_PROFILE = os.environ.get("PERSISTENCE_PROFILE", "orm")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CREATE_SCHEMA = os.environ.get("CREATE_SCHEMA", "true").lower() in ("1", "true", "yes")
