"""The Delegation Framework capability the lifecycle engine depends on.

The engine never talks to a chain directly. It receives an implementation of
`DelegationFramework` (the web3.py one in `blockchain.py`, or a test double).
"""

from abc import ABC, abstractmethod

from inheritance_vault.models import DeleGatorEnvironment, Delegation, Execution, SignedDelegation, TxReceipt


class DelegationFramework(ABC):
    """Account deployment, delegation signing, disabling and redemption."""

    environment: DeleGatorEnvironment

    @property
    @abstractmethod
    def owner_address(self) -> str:
        """Address of the key that deploys accounts and signs delegations."""

    @abstractmethod
    def account_address(self, owner_address: str, salt: str) -> str:
        """Counterfactual address of the smart account for `owner_address` and `salt`."""

    @abstractmethod
    def is_deployed(self, address: str) -> bool:
        """True if contract code exists at `address`."""

    @abstractmethod
    def deploy_account(self, owner_address: str, salt: str) -> TxReceipt:
        """Deploy the smart account. Raises on failure."""

    @abstractmethod
    def fund(self, address: str, amount: int) -> TxReceipt:
        """Send `amount` wei from the owner to `address`. Raises on failure."""

    @abstractmethod
    def get_balance(self, address: str) -> int:
        """Native balance in wei."""

    @abstractmethod
    def sign_delegation(self, delegation: Delegation) -> SignedDelegation:
        """Sign with the vault's authority."""

    @abstractmethod
    def delegation_hash(self, delegation: Delegation) -> str:
        """Content hash identifying the delegation on-chain."""

    @abstractmethod
    def is_delegation_disabled(self, delegation_hash: str) -> bool:
        """Read the disabled flag from the DelegationManager."""

    @abstractmethod
    def disable_delegation(self, signed: SignedDelegation) -> TxReceipt:
        """Disable a delegation on-chain. Raises on failure."""

    @abstractmethod
    def redeem_delegation(self, signed: SignedDelegation, execution: Execution, redeemer_key: str) -> TxReceipt:
        """Redeem as the delegate, paying gas from `redeemer_key`. Raises on failure."""
