"""
Inventory Service — 設定
"""

import os

from pydantic import BaseModel


class Settings(BaseModel):
    database_url: str
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.environ["DATABASE_URL"],
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
