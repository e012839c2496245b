"""
Authentication schemas.

Request bodies check shape and e-mail syntax (pydantic ``EmailStr``, the same
email-validator rules the kernel applies). Other field rules (lengths,
formats, sanitizing) live in ``identity_core.kernel.identity.registration``.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from identity_core.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """Customer registration request."""

    email: EmailStr
    password: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


class LoginRequest(CamelModel):
    """Login request (customer or admin route)."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=1024)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=512)
    new_password: str


class ProfileUpdateRequest(CamelModel):
    first_name: str
    last_name: str
    phone: Optional[str] = None


class CustomerResponse(CamelModel):
    """Customer profile as returned to the customer (or an admin)."""

    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class AdminCustomerResponse(CustomerResponse):
    is_active: bool = True
    last_login_at: Optional[datetime] = None


class AdminResponse(CamelModel):
    id: str
    email: str
    role: str = "admin"


class AuthResponse(CamelModel):
    """Token plus the customer it was issued to."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    customer: CustomerResponse


class AdminAuthResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


class ProfileResponse(CamelModel):
    customer: CustomerResponse


class ProfileUpdateResponse(CamelModel):
    success: bool = True
    customer: CustomerResponse


class CustomerListResponse(CamelModel):
    customers: List[AdminCustomerResponse]
    total: int
