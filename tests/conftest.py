import pytest
from eth_utils import keccak, to_checksum_address

from inheritance_vault.delegation import delegation_hash
from inheritance_vault.framework import DelegationFramework
from inheritance_vault.lifecycle import VaultEngine
from inheritance_vault.models import BeneficiaryInput, DeleGatorEnvironment, SignedDelegation, TxReceipt
from inheritance_vault.store import FileVaultStore, MemoryVaultStore

OWNER = "0x" + "aa" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20
TOKEN = "0x" + "70" * 20
ONE = 10**18
START = 1_700_000_000


def _addr(n: int) -> str:
    return to_checksum_address(f"0x{n:040x}")


ENVIRONMENT = DeleGatorEnvironment(
    chain_id=10143,
    delegation_manager=_addr(0xD0),
    caveat_enforcers={
        "timestamp": _addr(0xE1),
        "limitedCalls": _addr(0xE2),
        "nativeTokenTransferAmount": _addr(0xE3),
        "erc20TransferAmount": _addr(0xE4),
    },
)


class Clock:
    """Settable clock for the engine."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeDelegationFramework(DelegationFramework):
    """In-memory chain: balances, deployed accounts, disabled hashes and redemptions."""

    def __init__(self, environment: DeleGatorEnvironment = ENVIRONMENT):
        self.environment = environment
        self.balances: dict[str, int] = {}
        self.deployed: set[str] = set()
        self.disabled: set[str] = set()
        self.redeemed: list[str] = []
        self.fail_deploy = False
        self.fail_fund = False
        self.fail_redeem = False
        self.fail_disable: set[str] = set()
        # Raise on the n-th signature (0-based) when set.
        self.fail_sign_at: int | None = None
        self.sign_count = 0
        self.disable_calls = 0
        self._tx = 0

    @property
    def owner_address(self):
        return OWNER

    def _receipt(self, gas_used: int = 21_000) -> TxReceipt:
        self._tx += 1
        return TxReceipt(tx_hash=f"0x{self._tx:064x}", gas_used=gas_used, block_number=self._tx)

    def account_address(self, owner_address, salt):
        return to_checksum_address(keccak(text=f"{owner_address.lower()}:{salt}")[12:])

    def is_deployed(self, address):
        return address.lower() in self.deployed

    def deploy_account(self, owner_address, salt):
        if self.fail_deploy:
            raise RuntimeError("deploy reverted")
        self.deployed.add(self.account_address(owner_address, salt).lower())
        return self._receipt(1_000_000)

    def fund(self, address, amount):
        if self.fail_fund:
            raise RuntimeError("insufficient funds")
        self.balances[address.lower()] = self.balances.get(address.lower(), 0) + amount
        return self._receipt()

    def get_balance(self, address):
        return self.balances.get(address.lower(), 0)

    def sign_delegation(self, delegation):
        index = self.sign_count
        self.sign_count += 1
        if self.fail_sign_at is not None and index >= self.fail_sign_at:
            raise RuntimeError("signer unavailable")
        signature = "0x" + keccak(text=delegation_hash(delegation)).hex() * 2 + "1b"
        return SignedDelegation(delegation=delegation, signature=signature)

    def delegation_hash(self, delegation):
        return delegation_hash(delegation)

    def is_delegation_disabled(self, delegation_hash):
        return delegation_hash in self.disabled

    def disable_delegation(self, signed):
        digest = delegation_hash(signed.delegation)
        self.disable_calls += 1
        if digest in self.fail_disable:
            raise RuntimeError("disable reverted")
        self.disabled.add(digest)
        return self._receipt(50_000)

    def redeem_delegation(self, signed, execution, redeemer_key):
        digest = delegation_hash(signed.delegation)
        if self.fail_redeem or digest in self.disabled or digest in self.redeemed:
            raise RuntimeError("redemption reverted")
        vault = signed.delegation.delegator.lower()
        self.balances[vault] -= execution.value
        self.redeemed.append(digest)
        return self._receipt(120_000)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def framework():
    return FakeDelegationFramework()


@pytest.fixture
def store():
    return MemoryVaultStore()


@pytest.fixture
def file_store(tmp_path):
    return FileVaultStore(tmp_path / "vaults")


@pytest.fixture
def engine(framework, store, clock):
    return VaultEngine(framework, store, clock=clock)


@pytest.fixture
def funded_vault(engine):
    """A 30-day vault holding 1 native unit, no beneficiaries yet."""
    record = engine.create_vault(OWNER, 30, "days", initial_funding=ONE)
    return record.config.vault_address


@pytest.fixture
def active_vault(engine, funded_vault):
    """funded_vault with Alice (60%) and Bob (40%)."""
    engine.setup_beneficiaries(
        funded_vault,
        [
            BeneficiaryInput(address=ALICE, name="Alice", allocation=6 * ONE // 10),
            BeneficiaryInput(address=BOB, name="Bob", allocation=4 * ONE // 10),
        ],
    )
    return funded_vault
