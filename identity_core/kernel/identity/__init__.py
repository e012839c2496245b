"""
Identity Core - credentials, bearer tokens, registration and password reset.
"""

from identity_core.kernel.identity.types import Identity, Role, normalize_email
from identity_core.kernel.identity.password import PasswordHasher, verify_password, hash_password
from identity_core.kernel.identity.jwt import BearerToken, TokenClaims, TokenService
from identity_core.kernel.identity.credential_store import (
    AdminAccount,
    CredentialCheck,
    CredentialStore,
    CustomerProfile,
)
from identity_core.kernel.identity.password_reset import (
    PasswordResetDelivery,
    PasswordResetFlow,
)
from identity_core.kernel.identity.registration import RegistrationService

__all__ = [
    "Identity",
    "Role",
    "normalize_email",
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "BearerToken",
    "TokenClaims",
    "TokenService",
    "AdminAccount",
    "CredentialCheck",
    "CredentialStore",
    "CustomerProfile",
    "PasswordResetDelivery",
    "PasswordResetFlow",
    "RegistrationService",
]
