"""
Authentication endpoints.
"""

from fastapi import APIRouter, HTTPException, Request, status

from citytrees.api.deps import CurrentPrincipal, Identity, get_client_ip
from citytrees.kernel.errors import NotFoundError
from citytrees.schemas.auth import (
    ChangePasswordRequest,
    LogoutRequest,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserProfileUpdate,
    UserResponse,
)
from citytrees.schemas.common import SuccessResponse

router = APIRouter()


def _token_response(user, token_pair) -> TokenResponse:
    return TokenResponse(
        access_token=token_pair.access_token,
        refresh_token=token_pair.refresh_token,
        token_type=token_pair.token_type,
        expires_in=token_pair.expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, data: UserCreate, identity: Identity):
    """
    Register a new account with the BASIC role.

    Returns access and refresh tokens on successful registration.
    """
    ip_address = get_client_ip(request)
    try:
        await identity.register_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            ip_address=ip_address,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = await identity.authenticate(data.email, data.password, ip_address=ip_address)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to authenticate after registration",
        )
    return _token_response(*result)


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, data: UserLogin, identity: Identity):
    """Authenticate with email and password."""
    result = await identity.authenticate(
        email=data.email,
        password=data.password,
        ip_address=get_client_ip(request),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _token_response(*result)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(data: RefreshTokenRequest, identity: Identity):
    """
    Refresh access token using refresh token.

    The old refresh token is revoked.
    """
    result = await identity.refresh_tokens(data.refresh_token)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    return _token_response(*result)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    request: Request,
    data: LogoutRequest,
    principal: CurrentPrincipal,
    identity: Identity,
):
    await identity.logout(
        principal.id,
        refresh_token=data.refresh_token,
        revoke_all=data.revoke_all,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def get_me(principal: CurrentPrincipal, identity: Identity):
    user = await identity.get_user_by_id(principal.id)
    if not user:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    request: Request,
    data: UserProfileUpdate,
    principal: CurrentPrincipal,
    identity: Identity,
):
    try:
        user = await identity.update_user(
            principal.id,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            ip_address=get_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not user:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    principal: CurrentPrincipal,
    identity: Identity,
):
    """Change password. All refresh tokens are revoked."""
    changed = await identity.change_password(
        principal.id,
        current_password=data.current_password,
        new_password=data.new_password,
        ip_address=get_client_ip(request),
    )
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    return SuccessResponse(message="Password changed")
