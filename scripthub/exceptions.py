"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class ScriptHubError(Exception):
    """Base exception for all ScriptHub errors."""

    pass


# ============================================================================
# Redemption Errors
# ============================================================================


class RedemptionError(ScriptHubError):
    """Base exception for redeem code failures reported to the caller."""

    pass


class InvalidCodeError(RedemptionError):
    """Raised when no redeem code matches the presented string."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Invalid redeem code: {code}")


class CodeExhaustedError(RedemptionError):
    """Raised when a redeem code has reached its usage limit."""

    def __init__(self, code_id: str, usage_limit: int) -> None:
        self.code_id = code_id
        self.usage_limit = usage_limit
        super().__init__(f"Redeem code {code_id} has reached its usage limit ({usage_limit})")


class NotAuthenticatedError(RedemptionError):
    """Raised when an operation needs a calling identity and none was supplied."""

    def __init__(self, message: str = "You must be logged in") -> None:
        self.message = message
        super().__init__(message)


class EmptyInputError(RedemptionError):
    """Raised when the presented code string is blank."""

    def __init__(self, field: str = "code") -> None:
        self.field = field
        super().__init__(f"{field} must not be empty")


# ============================================================================
# Store Errors
# ============================================================================


class StoreUnavailableError(ScriptHubError):
    """Raised when the document store cannot be reached or fails a call."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"Document store unavailable during {operation}: {message}")


class ConcurrencyError(ScriptHubError):
    """Raised when a conditional update keeps losing to concurrent writers."""

    def __init__(self, resource: str, attempts: int) -> None:
        self.resource = resource
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification detected for {resource} after {attempts} attempts"
        )


class DocumentNotFoundError(ScriptHubError):
    """Raised when a required document is absent."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class InvalidPathError(ScriptHubError):
    """Raised when a document path cannot be split into collection and key."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Invalid document path: {path!r}")


# ============================================================================
# Access Errors
# ============================================================================


class AuthenticationError(ScriptHubError):
    """Raised when an ID token cannot be verified."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class AuthorizationError(ScriptHubError):
    """Raised when the caller's resolved role does not allow an action."""

    def __init__(self, required_role: str) -> None:
        self.required_role = required_role
        super().__init__(f"Authorization failed: requires {required_role} access")


class IdentityProviderError(ScriptHubError):
    """Raised when the identity provider's signing keys cannot be fetched."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Identity provider unavailable: {message}")


# ============================================================================
# Redeem Code Administration / Gacha Errors
# ============================================================================


class RedeemCodeValidationError(ScriptHubError):
    """Raised when an admin tries to create a malformed redeem code."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid redeem code: {message}")


class GachaIneligibleError(ScriptHubError):
    """Raised when a non-basic user tries to play the daily gacha."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Daily gacha is only available to basic users, not {role}")


class GachaCooldownError(ScriptHubError):
    """Raised when the daily gacha was played less than a cooldown ago."""

    def __init__(self, hours_remaining: int) -> None:
        self.hours_remaining = hours_remaining
        super().__init__(f"You can play the gacha again in {hours_remaining} hours")
