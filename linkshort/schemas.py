from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LinkCreate(BaseModel):
    # Plain strings: the route validates them to answer 400 instead of 422
    url: str | None = None
    code: str | None = None

class LinkCreated(BaseModel):
    code: str
    url: str

class LinkOut(BaseModel):
    code: str
    url: str
    clicks: int
    created_at: datetime
    last_clicked: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

class Health(BaseModel):
    ok: bool
    version: str

class MessageOut(BaseModel):
    message: str
