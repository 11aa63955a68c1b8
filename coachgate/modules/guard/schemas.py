from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RouteAccessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow: bool
    redirect_to: Optional[str] = Field(None, alias="redirectTo")
