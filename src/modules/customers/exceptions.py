"""Customer domain exceptions.

Raised by the Service Layer when a customer spec cannot be resolved.
"""

from __future__ import annotations

from modules.core.exceptions import AuthorizationError, NotFoundError, ValidationError


class CustomerNotFound(NotFoundError):
    """The referenced customer does not exist."""

    code = "customer_not_found"


class InvalidCustomerInfo(ValidationError):
    """Staff-provided customer details are missing a name or an email."""

    code = "invalid_customer_info"


class CustomerSpecNotAllowed(AuthorizationError):
    """Only staff may place orders on behalf of another customer."""

    code = "customer_spec_not_allowed"
