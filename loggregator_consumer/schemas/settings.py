# loggregator_consumer/schemas/settings.py
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_KEEPALIVE_INTERVAL = 25.0
DEFAULT_BUFFER_SIZE = 1024
DEFAULT_MAX_FRAME_SIZE = 2**20


class ConsumerSettings(BaseModel):
    keepalive_interval: float = Field(
        default=DEFAULT_KEEPALIVE_INTERVAL, gt=0, description="Seconds between keepalive frames"
    )
    buffer_size: int = Field(
        default=DEFAULT_BUFFER_SIZE,
        ge=0,
        description="Undelivered items held per stream before the oldest is dropped (0 = unbounded)",
    )
    open_timeout: float = Field(default=10.0, gt=0, description="Seconds allowed for the WebSocket handshake")
    close_timeout: float = Field(default=5.0, gt=0, description="Seconds allowed for the closing handshake")
    max_frame_size: Optional[int] = Field(
        default=DEFAULT_MAX_FRAME_SIZE, gt=0, description="Largest accepted frame in bytes (None = no limit)"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "keepalive_interval": 25.0,
                "buffer_size": 1024,
                "open_timeout": 10.0,
                "close_timeout": 5.0,
                "max_frame_size": 1048576,
            }
        },
    }
