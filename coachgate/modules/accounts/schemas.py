from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Type

from pydantic import BaseModel


class Role(str, Enum):
    PENDING = "pending"
    CLIENT = "client"
    TRAINER = "trainer"
    ADMIN = "admin"


class RegistrationMethod(str, Enum):
    EMAIL = "email"
    GOOGLE = "google"


SELECTABLE_ROLES = (Role.CLIENT, Role.TRAINER)


class Account(BaseModel):
    id: str
    email: str
    name: str
    role: Role = Role.PENDING
    registration_method: RegistrationMethod = RegistrationMethod.EMAIL
    created_at: datetime
    last_login_at: Optional[datetime] = None


class Profile(BaseModel):
    id: str
    account_id: str
    created_at: datetime


class TrainerProfile(Profile):
    pass


class ClientProfile(Profile):
    pass


PROFILE_TYPES: Dict[Role, Type[Profile]] = {
    Role.TRAINER: TrainerProfile,
    Role.CLIENT: ClientProfile,
}
