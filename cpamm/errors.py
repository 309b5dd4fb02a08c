"""
Error taxonomy for the pair engine.

Every failure is terminal for the call that raised it. The Chain restores the
pre-call snapshot before the exception reaches the caller.
"""


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


# --- Preconditions ---

class Expired(ValidationError):
    """Deadline already passed."""


class Forbidden(ValidationError):
    """Caller is not allowed to perform a privileged call."""


class Locked(ValidationError):
    """A mutating call re-entered a pair that is already mid-operation."""


class AlreadyInitialized(ValidationError):
    pass


class InvalidAsset(ValidationError):
    """Asset is not part of this pair."""


class InvalidTo(ValidationError):
    """Recipient is one of the pooled tokens."""


class IdenticalAddresses(ValidationError):
    pass


class ZeroAddress(ValidationError):
    pass


class PairExists(ValidationError):
    pass


# --- Amount checks ---

class InsufficientOutputAmount(ValidationError):
    pass


class InsufficientInputAmount(ValidationError):
    pass


class InsufficientLiquidity(ValidationError):
    """Requested output would drain a reserve."""


class InsufficientLiquidityMinted(ValidationError):
    pass


class InsufficientLiquidityBurned(ValidationError):
    pass


class InsufficientAAmount(ValidationError):
    pass


class InsufficientBAmount(ValidationError):
    pass


class AmountExceedsDesired(ValidationError):
    pass


# Deposit ratio failures are reported against the (x, y) naming as well.
InsufficientXAmount = InsufficientAAmount
InsufficientYAmount = InsufficientBAmount


class InvariantViolation(ValidationError):
    """Fee-adjusted product fell below the pre-swap product (K)."""


class Overflow(ValidationError):
    """Checked arithmetic left its fixed bit width."""


# --- Token and share ledger ---

class TransferFailed(ValidationError):
    pass


class InsufficientBalance(TransferFailed):
    pass


class InsufficientAllowance(TransferFailed):
    pass


class InvalidSignature(ValidationError):
    pass


# --- Oracle ---

class PeriodNotElapsed(ValidationError):
    pass
