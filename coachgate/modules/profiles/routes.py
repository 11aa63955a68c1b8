from fastapi import APIRouter, Depends

from coachgate.core.dependencies import get_account_registry, require_role
from coachgate.modules.accounts.schemas import Account, Role
from coachgate.modules.accounts.service import AccountRegistry
from coachgate.modules.profiles.schemas import ProfileOut, ProfileResponse

router = APIRouter(tags=["profiles"])


def _profile_response(registry: AccountRegistry, account: Account, role: Role) -> ProfileResponse:
    profile = registry.get_profile(account.id, role)
    return ProfileResponse(
        profile=ProfileOut(
            id=profile.id,
            account_id=profile.account_id,
            role=role,
            created_at=profile.created_at,
        )
    )


@router.get("/trainer/profile", response_model=ProfileResponse)
async def trainer_profile(
    account: Account = Depends(require_role(Role.TRAINER)),
    registry: AccountRegistry = Depends(get_account_registry)
):
    """Trainer dashboard data for the current user"""
    return _profile_response(registry, account, Role.TRAINER)


@router.get("/client/profile", response_model=ProfileResponse)
async def client_profile(
    account: Account = Depends(require_role(Role.CLIENT)),
    registry: AccountRegistry = Depends(get_account_registry)
):
    """Client dashboard data for the current user"""
    return _profile_response(registry, account, Role.CLIENT)
