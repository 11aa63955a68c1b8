"""Route access decisions for the client application."""

from dataclasses import dataclass
from typing import Optional

from coachgate.modules.accounts.schemas import Role

LOGIN_PATH = "/auth/login"
ROLE_SELECTION_PATH = "/auth/role-selection"
HOME_PATH = "/"

DASHBOARD_PATHS = {
    Role.TRAINER: "/trainer/dashboard",
    Role.CLIENT: "/client/dashboard",
    Role.ADMIN: "/admin/dashboard",
}


@dataclass(frozen=True)
class AccessDecision:
    allow: bool
    redirect_to: Optional[str] = None


ALLOW = AccessDecision(allow=True)


def redirect(path: str) -> AccessDecision:
    return AccessDecision(allow=False, redirect_to=path)


def landing_path(role: Role, needs_role_selection: bool = False) -> str:
    """Where a freshly authenticated user should land."""
    if needs_role_selection or role == Role.PENDING:
        return ROLE_SELECTION_PATH
    return DASHBOARD_PATHS.get(role, HOME_PATH)


def check_access(has_session: bool, role: Optional[Role], required_role: Optional[Role] = None) -> AccessDecision:
    if not has_session:
        return redirect(LOGIN_PATH)
    if required_role is None:
        return ALLOW
    if role is None or role == Role.PENDING:
        return redirect(ROLE_SELECTION_PATH)
    if role != required_role:
        # Cross-redirect to the caller's own dashboard rather than to login.
        return redirect(DASHBOARD_PATHS.get(role, HOME_PATH))
    return ALLOW
