"""Exception taxonomy for vault operations."""


class VaultError(Exception):
    """Base class for all vault errors."""


class ValidationError(VaultError, ValueError):
    """Bad input. Raised before any state change."""

    def __init__(self, message: str, warnings: tuple[str, ...] = ()):
        super().__init__(message)
        self.warnings = warnings


class NotFoundError(VaultError, LookupError):
    """Vault, beneficiary or delegation is absent."""


class TransactionError(VaultError, RuntimeError):
    """An on-chain submission failed. Partial state is possible."""


class DeploymentError(TransactionError):
    """The account deployment transaction failed."""


class FundingError(TransactionError):
    """The funding transfer failed. The vault exists but is unfunded."""

    def __init__(self, message: str, vault_address: str):
        super().__init__(message)
        self.vault_address = vault_address


class SigningError(TransactionError):
    """A delegation could not be signed. Nothing from the call was persisted."""


class ClaimError(VaultError):
    """A claim precondition is not met."""


class AlreadyClaimedError(ClaimError):
    """The beneficiary has already claimed."""


class DelegationDisabledError(ClaimError):
    """The beneficiary's delegation has been disabled by a check-in."""


class TooEarlyError(ClaimError):
    """The deadline has not passed yet."""

    def __init__(self, message: str, seconds_remaining: int):
        super().__init__(message)
        self.seconds_remaining = seconds_remaining


class NoActiveDelegationsError(VaultError):
    """Check-in found nothing to disable."""


class StorageError(VaultError, RuntimeError):
    """A stored record could not be read or written."""


class ConcurrentModificationError(StorageError):
    """The stored record changed since it was loaded."""
