"""
Customer authentication endpoints.
"""

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, status

from identity_core.api.deps import (
    Credentials,
    CustomerProfilePrincipal,
    DbSession,
    Mailer,
    RateLimit,
    Tokens,
)
from identity_core.config import get_settings
from identity_core.database import async_session_maker
from identity_core.kernel.errors import UnauthorizedError
from identity_core.kernel.identity.password_reset import PasswordResetFlow
from identity_core.kernel.identity.registration import (
    RegistrationService,
    validate_password,
    validate_profile,
)
from identity_core.kernel.identity.types import Role
from identity_core.kernel.ratelimit.limiter import RouteClass
from identity_core.logging_config import get_logger, mask_email
from identity_core.schemas.auth import (
    AuthResponse,
    CustomerResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from identity_core.schemas.common import SuccessResponse

logger = get_logger(__name__)

router = APIRouter()

LOGIN_FAILED = "Login failed"
FORGOT_PASSWORD_MESSAGE = "If an account with this email exists, a password reset link has been sent."
RESET_PASSWORD_MESSAGE = "Password has been reset successfully. You can now log in with your new password."


def _reset_flow(db: DbSession, credentials: Credentials, mailer: Mailer) -> PasswordResetFlow:
    settings = get_settings()
    return PasswordResetFlow(
        db,
        credentials,
        mailer=mailer,
        token_ttl=timedelta(minutes=settings.password_reset_token_expire_minutes),
        session_factory=async_session_maker,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit(RouteClass.REGISTER))],
)
async def register(
    data: RegisterRequest,
    credentials: Credentials,
    tokens: Tokens,
):
    """
    Register a new customer account.

    Returns a customer token on success; registration doubles as first login.
    """
    service = RegistrationService(credentials, tokens)
    identity, token = await service.register(
        email=data.email,
        secret=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )
    return AuthResponse(
        token=token.token,
        expires_in=token.expires_in,
        customer=CustomerResponse.model_validate(identity),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(RateLimit(RouteClass.LOGIN))],
)
async def login(
    data: LoginRequest,
    credentials: Credentials,
    tokens: Tokens,
):
    """
    Authenticate a customer and return a token.

    Every failure gets the same response; the reason is only logged.
    """
    check = await credentials.verify(data.email, data.password)
    if not check.matched:
        logger.info(
            "Customer login failed",
            extra={"email": mask_email(data.email), "reason": check.reason},
        )
        raise UnauthorizedError(LOGIN_FAILED, reason=check.reason)

    identity = check.identity
    if identity.is_admin:
        # The operator signs in through /admin/auth/login
        logger.warning("Admin credentials presented to customer login")
        raise UnauthorizedError(LOGIN_FAILED, reason="admin_on_customer_route")

    await credentials.record_login(identity)
    token = tokens.issue(identity.id, Role.CUSTOMER)
    logger.info("Customer logged in", extra={"customer_id": identity.id})

    return AuthResponse(
        token=token.token,
        expires_in=token.expires_in,
        customer=CustomerResponse.model_validate(identity),
    )


@router.post(
    "/forgot-password",
    response_model=SuccessResponse,
    dependencies=[Depends(RateLimit(RouteClass.PASSWORD_RESET_REQUEST))],
)
async def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    flow: PasswordResetFlow = Depends(_reset_flow),
):
    """
    Request a password reset link.

    The response is identical whether or not the address is registered, and
    so is the work done before it: storing the token and sending the e-mail
    run after the response is sent.
    """
    delivery = await flow.request(data.email)
    if delivery is not None:
        background_tasks.add_task(flow.deliver, delivery)
    return SuccessResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=SuccessResponse,
    dependencies=[Depends(RateLimit(RouteClass.PASSWORD_RESET_COMPLETE))],
)
async def reset_password(
    data: ResetPasswordRequest,
    flow: PasswordResetFlow = Depends(_reset_flow),
):
    """Consume a reset token and set a new password."""
    validate_password(data.new_password, field="newPassword")
    await flow.complete(data.token, data.new_password)
    return SuccessResponse(message=RESET_PASSWORD_MESSAGE)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    principal: CustomerProfilePrincipal,
    credentials: Credentials,
):
    """Get the calling customer's profile."""
    identity = await credentials.get_identity(principal.subject_id)
    if identity is None:
        raise UnauthorizedError(reason="subject_not_found")
    return ProfileResponse(customer=CustomerResponse.model_validate(identity))


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    data: ProfileUpdateRequest,
    principal: CustomerProfilePrincipal,
    credentials: Credentials,
):
    """Update the calling customer's name and phone."""
    profile = validate_profile(data.first_name, data.last_name, data.phone)
    identity = await credentials.update_profile(principal.subject_id, profile)
    if identity is None:
        raise UnauthorizedError(reason="subject_not_found")
    return ProfileUpdateResponse(customer=CustomerResponse.model_validate(identity))
