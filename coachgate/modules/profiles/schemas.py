from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from coachgate.modules.accounts.schemas import Role


class ProfileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    account_id: str = Field(alias="accountId")
    role: Role
    created_at: datetime = Field(alias="createdAt")


class ProfileResponse(BaseModel):
    success: bool = True
    profile: ProfileOut
