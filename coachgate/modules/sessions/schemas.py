from datetime import datetime

from pydantic import BaseModel


class Session(BaseModel):
    account_id: str
    access_token: str
    refresh_token: str
    issued_at: datetime
    expires_at: datetime
    refresh_expires_at: datetime
