"""Data models for the inheritance vault."""

from dataclasses import dataclass, field
from enum import Enum

from inheritance_vault.constants import ZERO_ADDRESS


class PeriodUnit(str, Enum):
    """Unit of a check-in period."""

    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class VaultStatus(str, Enum):
    """Derived vault status. Never stored; recomputed from the record on every read."""

    CREATED = "created"
    ACTIVE = "active"
    CLAIMABLE = "claimable"
    EMPTY = "empty"
    DISABLED = "disabled"


@dataclass(frozen=True)
class NativeAsset:
    """The chain's native currency."""

    @property
    def address(self) -> str:
        return ZERO_ADDRESS

    @property
    def is_native(self) -> bool:
        return True


@dataclass(frozen=True)
class TokenAsset:
    """An ERC-20 token held by the vault."""

    token_address: str

    @property
    def address(self) -> str:
        return self.token_address

    @property
    def is_native(self) -> bool:
        return False


Asset = NativeAsset | TokenAsset


def asset_from_address(address: str | None) -> Asset:
    """Map a stored asset identifier back to its variant. Empty or zero address means native."""
    if not address or address.lower() == ZERO_ADDRESS:
        return NativeAsset()
    return TokenAsset(token_address=address)


@dataclass(frozen=True)
class Caveat:
    """A single restriction attached to a delegation, enforced on-chain by `enforcer`."""

    enforcer: str
    terms: str
    args: str = "0x"


@dataclass(frozen=True)
class Delegation:
    """Unsigned delegation from the vault (delegator) to a beneficiary (delegate)."""

    delegate: str
    delegator: str
    authority: str
    caveats: tuple[Caveat, ...]
    salt: int


@dataclass(frozen=True)
class SignedDelegation:
    """A delegation together with the vault authority's signature."""

    delegation: Delegation
    signature: str


@dataclass(frozen=True)
class Execution:
    """A single call the delegate asks the vault to perform."""

    target: str
    value: int
    call_data: str = "0x"


@dataclass(frozen=True)
class TxReceipt:
    """The parts of a transaction receipt the vault keeps."""

    tx_hash: str
    gas_used: int
    block_number: int
    status: int = 1


@dataclass
class VaultConfig:
    """Core vault settings and state."""

    vault_address: str
    owner_address: str
    check_in_period: int
    check_in_period_unit: PeriodUnit
    last_check_in: int
    # Always last_check_in + period; recomputed on every check-in.
    next_deadline: int
    # Native balance in wei, refreshed from chain.
    total_value: int
    created_at: int
    tokens: list[str] = field(default_factory=list)
    salt: str = "0x"


@dataclass
class Beneficiary:
    """A single beneficiary and their allocation."""

    address: str
    name: str
    allocation: int
    # Display only; allocation is authoritative.
    percentage: float
    asset: Asset = field(default_factory=NativeAsset)
    delegation: SignedDelegation | None = None
    delegation_hash: str | None = None
    has_claimed: bool = False
    claim_tx_hash: str | None = None
    claim_timestamp: int | None = None


@dataclass(frozen=True)
class BeneficiaryInput:
    """Caller-supplied beneficiary before a delegation is issued for it."""

    address: str
    name: str
    allocation: int
    asset: Asset = field(default_factory=NativeAsset)


@dataclass
class StoredDelegation:
    """One signed delegation per beneficiary per epoch."""

    beneficiary_address: str
    delegation: SignedDelegation
    hash: str
    created_at: int
    deadline: int
    epoch: int = 0
    is_disabled: bool = False


@dataclass(frozen=True)
class CheckInRecord:
    """A single owner check-in."""

    timestamp: int
    tx_hash: str
    new_deadline: int
    disabled_delegation_count: int
    created_delegation_count: int
    gas_used: int
    # Hashes whose disable transaction failed; they may still be redeemable on-chain.
    failed_disables: tuple[str, ...] = ()


@dataclass
class VaultStorage:
    """Complete persisted vault record."""

    config: VaultConfig
    beneficiaries: list[Beneficiary] = field(default_factory=list)
    delegations: list[StoredDelegation] = field(default_factory=list)
    check_ins: list[CheckInRecord] = field(default_factory=list)
    last_updated: int = 0
    # Bumped by the store on every successful save.
    version: int = 0

    @property
    def current_epoch(self) -> int:
        """Highest delegation epoch issued so far, or -1 before the first setup."""
        if not self.delegations:
            return -1
        return max(d.epoch for d in self.delegations)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check."""

    is_valid: bool
    error: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeCalculation:
    """Time remaining until a deadline."""

    seconds_remaining: int
    human_readable: str
    is_past: bool
    deadline: int


@dataclass(frozen=True)
class VaultState:
    """Presentation-ready snapshot of a vault."""

    config: VaultConfig
    beneficiaries: list[Beneficiary]
    check_ins: list[CheckInRecord]
    status: VaultStatus
    time_remaining: int
    can_check_in: bool
    active_delegation_count: int


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a successful claim."""

    tx_hash: str
    amount: int
    gas_used: int


@dataclass(frozen=True)
class ClaimStatus:
    """Claim state of a single beneficiary."""

    has_claimed: bool
    allocation: int
    claim_tx_hash: str | None = None
    claim_timestamp: int | None = None


@dataclass(frozen=True)
class OwnerDashboard:
    """Owner-facing projection of a VaultState."""

    vault_address: str
    balance: int
    status: VaultStatus
    beneficiary_count: int
    total_allocated: int
    unallocated: int
    next_deadline: int
    time_remaining: int
    can_check_in: bool
    check_in_count: int
    claimed_count: int


@dataclass(frozen=True)
class BeneficiaryView:
    """Beneficiary-facing projection of a VaultState."""

    is_eligible: bool
    allocation: int
    percentage: float
    has_claimed: bool
    can_claim_now: bool
    time_until_claim: int
    claim_tx_hash: str | None = None


@dataclass(frozen=True)
class VaultHealth:
    """Result of a vault health check."""

    is_healthy: bool
    warnings: tuple[str, ...]
    errors: tuple[str, ...]


@dataclass(frozen=True)
class DeleGatorEnvironment:
    """Contract addresses of a Delegation Framework deployment."""

    chain_id: int
    delegation_manager: str
    # Keyed by caveat name: timestamp, limitedCalls, nativeTokenTransferAmount, erc20TransferAmount.
    caveat_enforcers: dict[str, str] = field(default_factory=dict)
    simple_factory: str | None = None
    hybrid_implementation: str | None = None
    # Creation code of the ERC-1967 proxy deployed by the factory, 0x-prefixed.
    proxy_creation_code: str | None = None
