from pydantic import BaseModel


class VerifiedIdentity(BaseModel):
    """An identity the credential store has vouched for."""
    id: str
    email: str
    name: str
