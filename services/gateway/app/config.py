"""
Gateway — 設定
"""

import os

from pydantic import BaseModel


class Settings(BaseModel):
    order_service_url: str
    inventory_service_url: str
    connect_timeout: float = 15.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            order_service_url=os.environ["ORDER_SERVICE_URL"],
            inventory_service_url=os.environ["INVENTORY_SERVICE_URL"],
            connect_timeout=float(os.environ.get("CONNECT_TIMEOUT", "15.0")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
