"""
Pydantic schemas for API request/response validation.
"""

from identity_core.schemas.auth import (
    AdminAuthResponse,
    AdminCustomerResponse,
    AdminResponse,
    AuthResponse,
    CustomerListResponse,
    CustomerResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from identity_core.schemas.common import (
    CamelModel,
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)
from identity_core.schemas.orders import (
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
)

__all__ = [
    "AdminAuthResponse",
    "AdminCustomerResponse",
    "AdminResponse",
    "AuthResponse",
    "CustomerListResponse",
    "CustomerResponse",
    "ForgotPasswordRequest",
    "LoginRequest",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "ProfileUpdateResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
    "OrderDetailResponse",
    "OrderListResponse",
    "OrderResponse",
]
