# loggregator_consumer/schemas/record.py
from datetime import datetime, timedelta, timezone
from enum import IntEnum

from pydantic import BaseModel, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MessageType(IntEnum):
    OUT = 1
    ERR = 2


class LogRecord(BaseModel):
    payload: bytes = Field(..., description="Raw log line as emitted by the app")
    app_id: str = Field(..., description="Guid of the app that produced the line")
    message_type: MessageType = Field(..., description="Which stream the line came from")
    source_name: str = Field(default="", description="Component label, e.g. DEA or App")
    source_id: str = Field(default="", description="Instance index within the source")
    timestamp: int = Field(..., description="Nanoseconds since the Unix epoch")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "payload": "hello",
                "app_id": "my-app-guid",
                "message_type": 1,
                "source_name": "DEA",
                "source_id": "0",
                "timestamp": 1700000000000000000,
            }
        },
    }

    @property
    def created_at(self) -> datetime:
        # epoch arithmetic covers the whole sint64 range on every platform
        return EPOCH + timedelta(microseconds=self.timestamp // 1000)
