"""
Collaborators outside the identity kernel: e-mail delivery and order reads.
"""

from identity_core.services.email import EmailService
from identity_core.services.orders import OrderReader

__all__ = ["EmailService", "OrderReader"]
