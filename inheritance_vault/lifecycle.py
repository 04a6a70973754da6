"""Vault lifecycle: create, set up beneficiaries, check in, claim.

Every operation reloads the record from the store, mutates it and saves it back. Nothing
is cached between calls. On-chain caveats (time lock, single use, amount cap) are the
actual enforcement; the off-chain checks here only reject hopeless claims early.
"""

import sys
import time
from collections.abc import Callable, Sequence

from tqdm import tqdm

from inheritance_vault.constants import DEFAULT_CHECK_IN_PERIOD
from inheritance_vault.delegation import build_inheritance_caveats, build_transfer_execution, create_delegation
from inheritance_vault.errors import (
    AlreadyClaimedError,
    DelegationDisabledError,
    DeploymentError,
    FundingError,
    NoActiveDelegationsError,
    NotFoundError,
    SigningError,
    TooEarlyError,
    TransactionError,
    ValidationError,
)
from inheritance_vault.formatters import (
    allocation_percentage,
    format_duration,
    format_native,
    format_period,
    format_timestamp,
    normalize_hex_str,
    short_hex,
)
from inheritance_vault.framework import DelegationFramework
from inheritance_vault.models import (
    Beneficiary,
    BeneficiaryInput,
    CheckInRecord,
    ClaimResult,
    ClaimStatus,
    PeriodUnit,
    StoredDelegation,
    TimeCalculation,
    VaultConfig,
    VaultState,
    VaultStorage,
)
from inheritance_vault.periods import deadline_from, is_past, parse_period_unit, remaining
from inheritance_vault.store import (
    VaultStore,
    beneficiary_delegation,
    find_beneficiary,
    mark_delegation_disabled,
    pending_disables,
)
from inheritance_vault.status import get_status
from inheritance_vault.validation import (
    ensure_valid,
    validate_address,
    validate_beneficiaries,
    validate_check_in_period,
)


def _warn(warnings: Sequence[str]) -> None:
    for warning in warnings:
        print(f"⚠️  {warning}", file=sys.stderr)


def _as_input(b: Beneficiary) -> BeneficiaryInput:
    return BeneficiaryInput(address=b.address, name=b.name, allocation=b.allocation, asset=b.asset)


class VaultEngine:
    """Runs vault operations against an injected Delegation Framework and store."""

    def __init__(
        self,
        framework: DelegationFramework,
        store: VaultStore,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.framework = framework
        self.store = store
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _load(self, vault_address: str) -> VaultStorage:
        record = self.store.load(vault_address)
        if record is None:
            raise NotFoundError(f"Vault not found: {vault_address}")
        return record

    def _save(self, record: VaultStorage) -> None:
        record.last_updated = self._now()
        self.store.save(record.config.vault_address, record, expected_version=record.version)

    # ------------------------------------------------------------------ create

    def create_vault(
        self,
        owner_address: str | None = None,
        period: int = DEFAULT_CHECK_IN_PERIOD,
        unit: PeriodUnit | str = PeriodUnit.DAYS,
        initial_funding: int = 0,
    ) -> VaultStorage:
        """
        Deploy a fresh smart account for the owner and persist an empty vault record.

        The record is saved before funding, so a FundingError leaves a created-but-unfunded
        vault that can be funded later with `fund_vault`. Deployment is never rolled back.

        The owner defaults to the framework's signing key. Any other owner is rejected: the
        account would be controlled by a key that never signs its delegations.
        """
        signer = self.framework.owner_address
        if owner_address is None:
            owner_address = signer
        ensure_valid(validate_address(owner_address))
        if owner_address.lower() != signer.lower():
            raise ValidationError(f"Owner {owner_address} does not match the signing key {signer}")

        print("\n🏦 Creating inheritance vault...", file=sys.stderr)
        print(f"   Owner: {owner_address}", file=sys.stderr)
        _warn(ensure_valid(validate_check_in_period(period, unit)))
        unit = parse_period_unit(unit)
        print(f"   Check-in period: {format_period(period, unit)}", file=sys.stderr)

        # Wall-clock nanoseconds give every vault its own deployment address.
        salt = normalize_hex_str(f"{time.time_ns():064x}")
        vault_address = self.framework.account_address(owner_address, salt)
        print(f"   Vault address: {vault_address}", file=sys.stderr)

        if self.framework.is_deployed(vault_address):
            print("ℹ️  Vault already deployed on-chain", file=sys.stderr)
        else:
            print("🚀 Deploying vault...", file=sys.stderr)
            try:
                receipt = self.framework.deploy_account(owner_address, salt)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                raise DeploymentError(f"Failed to deploy vault {vault_address}: {ex}") from ex
            print(f"✅ Vault deployed (gas used: {receipt.gas_used})", file=sys.stderr)

        now = self._now()
        record = VaultStorage(
            config=VaultConfig(
                vault_address=vault_address,
                owner_address=owner_address,
                check_in_period=period,
                check_in_period_unit=unit,
                last_check_in=now,
                next_deadline=deadline_from(period, unit, now),
                total_value=self.framework.get_balance(vault_address),
                created_at=now,
                salt=salt,
            ),
        )
        self._save(record)

        if initial_funding > 0:
            self.fund_vault(vault_address, initial_funding)
            record = self._load(vault_address)

        print(f"✅ Vault created. Check-in deadline: {format_timestamp(record.config.next_deadline)}", file=sys.stderr)
        return record

    def fund_vault(self, vault_address: str, amount: int) -> int:
        """Send `amount` wei from the owner into the vault. Returns the new balance."""
        record = self._load(vault_address)
        print(f"💰 Funding vault with {format_native(amount)}...", file=sys.stderr)
        try:
            self.framework.fund(record.config.vault_address, amount)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            raise FundingError(
                f"Failed to fund vault {record.config.vault_address}: {ex}", record.config.vault_address
            ) from ex
        record.config.total_value = self.framework.get_balance(record.config.vault_address)
        self._save(record)
        print(f"✅ Vault funded. Balance: {format_native(record.config.total_value)}", file=sys.stderr)
        return record.config.total_value

    def load_vault(self, vault_address: str) -> VaultStorage:
        """Stored record of a vault that is deployed on-chain."""
        record = self._load(vault_address)
        if not self.framework.is_deployed(record.config.vault_address):
            raise NotFoundError(f"Vault not deployed at {record.config.vault_address}")
        return record

    # ------------------------------------------------------------ beneficiaries

    def _issue(
        self,
        record: VaultStorage,
        inputs: Sequence[BeneficiaryInput],
        *,
        deadline: int,
        balance: int,
        epoch: int,
    ) -> tuple[list[Beneficiary], list[StoredDelegation]]:
        """Build and sign one delegation per input. Holds results in memory only."""
        vault_address = record.config.vault_address
        beneficiaries: list[Beneficiary] = []
        stored: list[StoredDelegation] = []
        with tqdm(inputs, desc="✍️  Signing delegations", unit="delegation", file=sys.stderr) as pbar:
            # Salts count every delegation ever issued by the vault, so no two share a hash.
            for salt, b in enumerate(pbar, start=len(record.delegations)):
                pbar.set_postfix(beneficiary=b.name)
                caveats = build_inheritance_caveats(
                    self.framework.environment, deadline=deadline, allocation=b.allocation, asset=b.asset
                )
                delegation = create_delegation(delegator=vault_address, delegate=b.address, caveats=caveats, salt=salt)
                try:
                    signed = self.framework.sign_delegation(delegation)
                except Exception as ex:  # pylint: disable=broad-exception-caught
                    raise SigningError(f"Failed to sign delegation for {b.name} ({b.address}): {ex}") from ex
                digest = self.framework.delegation_hash(delegation)
                beneficiaries.append(
                    Beneficiary(
                        address=b.address,
                        name=b.name,
                        allocation=b.allocation,
                        percentage=allocation_percentage(b.allocation, balance),
                        asset=b.asset,
                        delegation=signed,
                        delegation_hash=digest,
                    )
                )
                stored.append(
                    StoredDelegation(
                        beneficiary_address=b.address,
                        delegation=signed,
                        hash=digest,
                        created_at=self._now(),
                        deadline=deadline,
                        epoch=epoch,
                    )
                )
                tqdm.write(f"   ✅ {b.name}: {allocation_percentage(b.allocation, balance):.2f}%", file=sys.stderr)
        return beneficiaries, stored

    def setup_beneficiaries(
        self,
        vault_address: str,
        beneficiaries: Sequence[BeneficiaryInput],
        deadline: int | None = None,
    ) -> list[Beneficiary]:
        """
        Replace the whole beneficiary list and issue a new delegation epoch for it.

        Beneficiaries left out of `beneficiaries` are dropped. Use `add_beneficiary` /
        `remove_beneficiary` for incremental changes. Validation runs against the live balance
        before anything is signed; a SigningError discards everything signed in this call.
        """
        record = self._load(vault_address)
        balance = self.framework.get_balance(record.config.vault_address)
        print(f"\n👥 Setting up {len(beneficiaries)} beneficiaries...", file=sys.stderr)
        print(f"   Vault balance: {format_native(balance)}", file=sys.stderr)
        _warn(ensure_valid(validate_beneficiaries(beneficiaries, balance)))

        if deadline is None:
            deadline = record.config.next_deadline
        issued, stored = self._issue(
            record, beneficiaries, deadline=deadline, balance=balance, epoch=record.current_epoch + 1
        )

        record.beneficiaries = issued
        record.delegations.extend(stored)
        record.config.next_deadline = deadline
        record.config.total_value = balance
        self._save(record)
        print(f"✅ {len(issued)} beneficiaries set up", file=sys.stderr)
        return issued

    replace_all = setup_beneficiaries

    def add_beneficiary(self, vault_address: str, beneficiary: BeneficiaryInput) -> Beneficiary:
        """Add one beneficiary to the current epoch. Existing delegations are kept."""
        record = self._load(vault_address)
        if find_beneficiary(record, beneficiary.address) is not None:
            raise ValidationError(f"Beneficiary {beneficiary.address} already exists")
        balance = self.framework.get_balance(record.config.vault_address)
        unclaimed = [_as_input(b) for b in record.beneficiaries if not b.has_claimed]
        _warn(ensure_valid(validate_beneficiaries([*unclaimed, beneficiary], balance)))

        print(f"\n➕ Adding beneficiary: {beneficiary.name}", file=sys.stderr)
        issued, stored = self._issue(
            record,
            [beneficiary],
            deadline=record.config.next_deadline,
            balance=balance,
            epoch=max(record.current_epoch, 0),
        )
        record.beneficiaries.extend(issued)
        record.delegations.extend(stored)
        record.config.total_value = balance
        self._save(record)
        return issued[0]

    def remove_beneficiary(self, vault_address: str, beneficiary_address: str) -> list[Beneficiary]:
        """Drop a beneficiary and disable their current delegation on-chain."""
        record = self._load(vault_address)
        beneficiary = find_beneficiary(record, beneficiary_address)
        if beneficiary is None:
            raise NotFoundError(f"Beneficiary not found in vault: {beneficiary_address}")
        if beneficiary.has_claimed:
            raise AlreadyClaimedError(f"Beneficiary {beneficiary.name} has already claimed")

        print(f"\n➖ Removing beneficiary: {beneficiary.name}", file=sys.stderr)
        stored = beneficiary_delegation(record, beneficiary.address)
        if stored is not None and not stored.is_disabled:
            self._disable(stored)
            mark_delegation_disabled(record, stored.hash)
        record.beneficiaries = [b for b in record.beneficiaries if b is not beneficiary]
        self._save(record)
        return record.beneficiaries

    # ---------------------------------------------------------------- check-in

    def _disable(self, stored: StoredDelegation):
        """Disable on-chain unless already disabled there. Returns the receipt, or None if skipped."""
        if self.framework.is_delegation_disabled(stored.hash):
            return None
        return self.framework.disable_delegation(stored.delegation)

    def check_in(
        self,
        vault_address: str,
        new_period: int | None = None,
        new_unit: PeriodUnit | str | None = None,
    ) -> CheckInRecord:
        """
        Prove the owner is alive: disable the current delegations and issue new ones
        with the deadline moved to now + period.

        Every enabled, unredeemed delegation is disabled, including ones from older epochs
        whose disable failed before. Individual failures are reported and skipped; their
        hashes are kept in the check-in record and retried by the next check-in.
        """
        record = self._load(vault_address)
        config = record.config
        print("\n✋ Owner checking in...", file=sys.stderr)
        print(f"   Current deadline: {format_timestamp(config.next_deadline)}", file=sys.stderr)

        current = pending_disables(record)
        if not current:
            raise NoActiveDelegationsError(f"No active delegations to check in for vault {config.vault_address}")

        period = new_period if new_period is not None else config.check_in_period
        unit = new_unit if new_unit is not None else config.check_in_period_unit
        _warn(ensure_valid(validate_check_in_period(period, unit)))
        unit = parse_period_unit(unit)

        balance = self.framework.get_balance(config.vault_address)
        reissue = [_as_input(b) for b in record.beneficiaries if not b.has_claimed]
        ensure_valid(validate_beneficiaries(reissue, balance))

        receipts = []
        failed: list[str] = []
        disabled = 0
        with tqdm(current, desc="🚫 Disabling delegations", unit="delegation", file=sys.stderr) as pbar:
            for stored in pbar:
                pbar.set_postfix(hash=short_hex(stored.hash))
                try:
                    receipt = self._disable(stored)
                except Exception as ex:  # pylint: disable=broad-exception-caught
                    tqdm.write(f"   ❌ Failed to disable {short_hex(stored.hash)}: {ex}", file=sys.stderr)
                    failed.append(stored.hash)
                    continue
                if receipt is not None:
                    receipts.append(receipt)
                mark_delegation_disabled(record, stored.hash)
                disabled += 1
        print(f"✅ Disabled {disabled} delegation(s)", file=sys.stderr)
        # Persist the disabled flags before signing, they reflect on-chain state.
        self._save(record)

        now = self._now()
        new_deadline = deadline_from(period, unit, now)
        print(f"🔄 New deadline: {format_timestamp(new_deadline)}", file=sys.stderr)
        issued, stored_new = self._issue(
            record, reissue, deadline=new_deadline, balance=balance, epoch=record.current_epoch + 1
        )
        by_address = {b.address.lower(): b for b in issued}
        record.beneficiaries = [by_address.get(b.address.lower(), b) for b in record.beneficiaries]
        record.delegations.extend(stored_new)

        entry = CheckInRecord(
            timestamp=now,
            tx_hash=receipts[0].tx_hash if receipts else "0x0",
            new_deadline=new_deadline,
            disabled_delegation_count=disabled,
            created_delegation_count=len(issued),
            gas_used=sum(r.gas_used for r in receipts),
            failed_disables=tuple(failed),
        )
        config.last_check_in = now
        config.next_deadline = new_deadline
        config.check_in_period = period
        config.check_in_period_unit = unit
        config.total_value = balance
        record.check_ins.append(entry)
        self._save(record)

        if failed:
            _warn([f"{len(failed)} old delegation(s) could not be disabled and may still be redeemable"])
        print(f"✅ Check-in complete. Total gas used: {entry.gas_used}", file=sys.stderr)
        return entry

    def time_until_check_in(self, vault_address: str) -> TimeCalculation:
        record = self._load(vault_address)
        return remaining(record.config.next_deadline, self._now())

    def can_check_in(self, vault_address: str) -> bool:
        return bool(pending_disables(self._load(vault_address)))

    # ------------------------------------------------------------------- claim

    def claim(self, vault_address: str, beneficiary_address: str, beneficiary_key: str) -> ClaimResult:
        """Redeem the beneficiary's delegation, paying gas from `beneficiary_key`."""
        record = self._load(vault_address)
        print("\n💰 Claiming inheritance...", file=sys.stderr)
        print(f"   Beneficiary: {beneficiary_address}", file=sys.stderr)

        beneficiary = find_beneficiary(record, beneficiary_address)
        if beneficiary is None:
            raise NotFoundError(f"Beneficiary not found in vault: {beneficiary_address}")
        stored = beneficiary_delegation(record, beneficiary.address)
        if stored is None:
            raise NotFoundError(f"Delegation not found for {beneficiary_address}")
        if beneficiary.has_claimed:
            raise AlreadyClaimedError(f"{beneficiary.name} has already claimed ({beneficiary.claim_tx_hash})")
        if stored.is_disabled:
            raise DelegationDisabledError(f"Delegation for {beneficiary.name} has been disabled")

        now = self._now()
        deadline = record.config.next_deadline
        if not is_past(deadline, now):
            seconds = deadline - now
            raise TooEarlyError(
                f"Cannot claim yet. Deadline in {seconds} seconds ({format_duration(seconds)}, "
                f"{format_timestamp(deadline)})",
                seconds_remaining=seconds,
            )

        execution = build_transfer_execution(
            beneficiary_address=beneficiary.address, allocation=beneficiary.allocation, asset=beneficiary.asset
        )
        print("📤 Submitting claim transaction...", file=sys.stderr)
        try:
            receipt = self.framework.redeem_delegation(stored.delegation, execution, beneficiary_key)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            raise TransactionError(f"Claim for {beneficiary.name} failed: {ex}") from ex

        # Redemption can take a while; record the claim on a fresh copy.
        record = self._load(vault_address)
        entry = find_beneficiary(record, beneficiary.address)
        if entry is not None:
            entry.has_claimed = True
            entry.claim_tx_hash = receipt.tx_hash
            entry.claim_timestamp = self._now()
            self._save(record)

        print(f"✅ Claimed {format_native(beneficiary.allocation)} in {receipt.tx_hash}", file=sys.stderr)
        return ClaimResult(tx_hash=receipt.tx_hash, amount=beneficiary.allocation, gas_used=receipt.gas_used)

    def can_claim(self, vault_address: str, beneficiary_address: str) -> tuple[bool, str | None]:
        """Whether a claim would pass the off-chain checks, and why not."""
        record = self.store.load(vault_address)
        if record is None:
            return False, "Vault not found"
        beneficiary = find_beneficiary(record, beneficiary_address)
        if beneficiary is None:
            return False, "Not a beneficiary"
        if beneficiary.has_claimed:
            return False, "Already claimed"
        stored = beneficiary_delegation(record, beneficiary.address)
        if stored is None:
            return False, "Delegation not found"
        if stored.is_disabled:
            return False, "Delegation disabled"
        if not is_past(record.config.next_deadline, self._now()):
            return False, "Deadline not reached"
        return True, None

    def claim_status(self, vault_address: str, beneficiary_address: str) -> ClaimStatus | None:
        record = self.store.load(vault_address)
        if record is None:
            return None
        beneficiary = find_beneficiary(record, beneficiary_address)
        if beneficiary is None:
            return None
        return ClaimStatus(
            has_claimed=beneficiary.has_claimed,
            allocation=beneficiary.allocation,
            claim_tx_hash=beneficiary.claim_tx_hash,
            claim_timestamp=beneficiary.claim_timestamp,
        )

    # ------------------------------------------------------------------ status

    def status(self, vault_address: str) -> VaultState:
        """Current VaultState with a live balance."""
        return get_status(self.framework, self.store, vault_address, now=self._now())
