from typing import Optional

from fastapi import APIRouter, Depends, Query

from coachgate.core.dependencies import get_optional_account
from coachgate.core.errors import ValidationError
from coachgate.modules.accounts.schemas import Account, Role
from coachgate.modules.guard.schemas import RouteAccessResponse
from coachgate.modules.guard.service import check_access

router = APIRouter(tags=["guard"])


@router.get("/route-access", response_model=RouteAccessResponse)
async def route_access(
    required_role: Optional[str] = Query(None, alias="requiredRole"),
    account: Optional[Account] = Depends(get_optional_account)
):
    """Decide whether the current session may open a page that needs ``requiredRole``"""
    try:
        required = Role(required_role) if required_role else None
    except ValueError:
        raise ValidationError(f"Unknown role '{required_role}'", field="requiredRole")
    decision = check_access(
        account is not None,
        account.role if account else None,
        required,
    )
    return RouteAccessResponse(allow=decision.allow, redirect_to=decision.redirect_to)
