"""
Order Service — 設定

起動時に環境変数から一度だけ読み込む。
"""

import os

from pydantic import BaseModel


class Settings(BaseModel):
    database_url: str
    inventory_service_url: str = "http://localhost:8081"
    inventory_timeout: float = 3.0
    redis_url: str = "redis://localhost:6379"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.environ["DATABASE_URL"],
            inventory_service_url=os.environ.get(
                "INVENTORY_SERVICE_URL", "http://localhost:8081"
            ),
            inventory_timeout=float(os.environ.get("INVENTORY_TIMEOUT", "3.0")),
            # 空文字ならイベント発行を無効にする
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
