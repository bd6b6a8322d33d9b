import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConnectionCreate(BaseModel):
    type: str = ""
    name: str = ""


class ConnectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    type: str
    name: str
    status: str
    token_prefix: Optional[str] = None
    created_at: Optional[datetime] = None


class ConnectionWithToken(BaseModel):
    ok: bool = True
    connection: ConnectionOut
    # plaintext credential, returned once; only its hash is stored
    token: Optional[str] = None
