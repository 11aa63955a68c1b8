from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from coachgate.modules.accounts.schemas import Account, Role


class AliasedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(AliasedModel):
    email: str = ""
    name: str = ""
    password: str = ""
    password_repeat: str = Field("", alias="passwordRepeat")


class RegisterResponse(AliasedModel):
    success: bool = True
    user_id: str = Field(alias="userId")
    message: str


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class GoogleBridgeRequest(BaseModel):
    access_token: str = ""


class RoleRequest(BaseModel):
    role: str = ""


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: Role

    @classmethod
    def from_account(cls, account: Account) -> "UserOut":
        return cls(id=account.id, email=account.email, name=account.name, role=account.role)


class AuthResponse(AliasedModel):
    success: bool = True
    user: UserOut
    needs_role_selection: bool = Field(alias="needsRoleSelection")
    redirect_to: str = Field(alias="redirectTo")
    message: Optional[str] = None


class OAuthUrlResponse(BaseModel):
    url: str


class RoleResponse(AliasedModel):
    success: bool = True
    role: Role
    redirect_to: str = Field(alias="redirectTo")
    message: str


class SessionResponse(BaseModel):
    success: bool = True
    user: UserOut


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"
