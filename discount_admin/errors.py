class DiscountAdminError(Exception):
    """Base class for errors that end a request."""


class AuthorizationError(DiscountAdminError):
    """Raised when the current user lacks a required permission."""

    def __init__(self, permission: str):
        super().__init__(f"Missing permission: {permission}")
        self.permission = permission


class NotFoundError(DiscountAdminError):
    """Raised when a discount id does not exist."""

    def __init__(self, discount_id: int):
        super().__init__(f"No discount exists with the ID “{discount_id}”")
        self.discount_id = discount_id


class StoreError(DiscountAdminError):
    """Raised when the store cannot persist a change."""
