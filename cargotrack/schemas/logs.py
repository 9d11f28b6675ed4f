import uuid
import json
from enum import Enum
from typing import Optional, Dict, Any, Union

from pydantic import field_validator

from .common import ApiModel, UtcDateTime


class LogLevel(str, Enum):
    info = "info"
    warn = "warn"
    error = "error"
    debug = "debug"


class LogSource(str, Enum):
    server = "server"
    client = "client"


class ClientLogCreate(ApiModel):
    level: LogLevel
    message: str
    details: Optional[Union[Dict[str, Any], str]] = None  # browsers may send it pre-serialized
    stack_trace: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("message is required")
        return v

    @field_validator("details")
    @classmethod
    def _parse_details(cls, v):
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("details must be a JSON object")
            if not isinstance(parsed, dict):
                raise ValueError("details must be a JSON object")
            return parsed
        return v


class LogResponse(ApiModel):
    id: uuid.UUID
    level: LogLevel
    source: LogSource
    message: str
    details: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    request_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    stack_trace: Optional[str] = None
    created_at: UtcDateTime


class LogCleanupResponse(ApiModel):
    message: str
    deleted: int
