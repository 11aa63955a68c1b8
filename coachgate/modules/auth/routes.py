from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response

from coachgate.config import settings
from coachgate.core.dependencies import get_auth_workflow, get_current_account
from coachgate.core.errors import SessionInvalid
from coachgate.core.limiter import limiter
from coachgate.modules.accounts.schemas import Account
from coachgate.modules.auth.schemas import (
    AuthResponse, GoogleBridgeRequest, LoginRequest, LogoutResponse, OAuthUrlResponse,
    RegisterRequest, RegisterResponse, RoleRequest, RoleResponse, SessionResponse, UserOut
)
from coachgate.modules.auth.service import AuthOutcome, AuthWorkflow
from coachgate.modules.guard.service import landing_path
from coachgate.modules.sessions.cookies import clear_session_cookies, set_session_cookies

router = APIRouter(tags=["auth"])


def _auth_response(outcome: AuthOutcome, response: Response, welcome: str) -> AuthResponse:
    set_session_cookies(response, outcome.session)
    if outcome.needs_role_selection:
        message = f"{welcome} successful. Please complete your profile setup."
    else:
        message = f"{welcome} successful. Welcome back!"
    return AuthResponse(
        user=UserOut.from_account(outcome.account),
        needs_role_selection=outcome.needs_role_selection,
        redirect_to=outcome.redirect_to,
        message=message,
    )


@router.post("/user-registration", response_model=RegisterResponse, status_code=201)
@limiter.limit(settings.rate_limit)
async def register(
    request: Request,
    register_data: RegisterRequest,
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """Register a new user with role 'pending'"""
    result = workflow.register(
        register_data.email,
        register_data.name,
        register_data.password,
        register_data.password_repeat,
    )
    return RegisterResponse(user_id=result.user_id, message=result.message)


@router.post("/user-login", response_model=AuthResponse)
@limiter.limit(settings.rate_limit)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """Login with email and password; session is set as cookies"""
    outcome = workflow.login(login_data.email, login_data.password)
    return _auth_response(outcome, response, "Login")


@router.get("/user-login-google", response_model=OAuthUrlResponse)
async def login_google(workflow: AuthWorkflow = Depends(get_auth_workflow)):
    """Get the provider URL that starts the Google sign-in"""
    return OAuthUrlResponse(url=workflow.oauth_authorize_url())


@router.post("/google-auth-bridge", response_model=AuthResponse)
async def google_auth_bridge(
    response: Response,
    bridge_data: GoogleBridgeRequest,
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """Exchange the Google provider token for a session"""
    outcome = workflow.oauth_callback(bridge_data.access_token)
    return _auth_response(outcome, response, "Google sign-in")


@router.post("/user-role", response_model=RoleResponse)
async def select_role(
    role_data: RoleRequest,
    account: Account = Depends(get_current_account),
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """One-time role selection for pending accounts"""
    updated = workflow.select_role(account.id, role_data.role)
    return RoleResponse(
        role=updated.role,
        redirect_to=landing_path(updated.role),
        message=f"Successfully set up as {updated.role.value}",
    )


@router.get("/verify-session", response_model=SessionResponse)
async def verify_session(account: Account = Depends(get_current_account)):
    """Resolve the cookie session to the current user"""
    return SessionResponse(user=UserOut.from_account(account))


@router.post("/refresh-session", response_model=AuthResponse)
async def refresh_session(
    response: Response,
    refresh_token: Optional[str] = Cookie(None),
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """Rotate both session cookies using the refresh token"""
    if not refresh_token:
        raise SessionInvalid("No session found")
    outcome = workflow.refresh_session(refresh_token)
    return _auth_response(outcome, response, "Session refresh")


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(None),
    workflow: AuthWorkflow = Depends(get_auth_workflow)
):
    """Logout; always succeeds and clears the session cookies"""
    workflow.logout(refresh_token)
    clear_session_cookies(response)
    return LogoutResponse()
