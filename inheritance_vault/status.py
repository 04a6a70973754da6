"""Vault status and derived views.

Status is a pure function of the stored record, the live balance and the current time.
It is never persisted.
"""

from dataclasses import replace

from inheritance_vault.constants import DEADLINE_WARNING_SECONDS
from inheritance_vault.errors import NotFoundError
from inheritance_vault.framework import DelegationFramework
from inheritance_vault.models import (
    BeneficiaryView,
    OwnerDashboard,
    VaultHealth,
    VaultState,
    VaultStatus,
    VaultStorage,
)
from inheritance_vault.periods import current_timestamp, remaining
from inheritance_vault.store import VaultStore, active_delegations


def compute_status(record: VaultStorage, balance: int, now: int) -> VaultStatus:
    """Derive the vault status from balance, deadline and delegation flags."""
    beneficiaries = record.beneficiaries
    if not beneficiaries:
        return VaultStatus.CREATED
    if balance == 0 or all(b.has_claimed for b in beneficiaries):
        return VaultStatus.EMPTY
    if remaining(record.config.next_deadline, now).is_past:
        return VaultStatus.CLAIMABLE
    if active_delegations(record):
        return VaultStatus.ACTIVE
    return VaultStatus.DISABLED


def build_vault_state(record: VaultStorage, balance: int, now: int) -> VaultState:
    """Compose a VaultState from a record and a live balance."""
    active = active_delegations(record)
    return VaultState(
        config=replace(record.config, total_value=balance),
        beneficiaries=list(record.beneficiaries),
        check_ins=list(record.check_ins),
        status=compute_status(record, balance, now),
        time_remaining=remaining(record.config.next_deadline, now).seconds_remaining,
        can_check_in=bool(active),
        active_delegation_count=len(active),
    )


def get_status(
    framework: DelegationFramework, store: VaultStore, vault_address: str, *, now: int | None = None
) -> VaultState:
    """Load a vault, query its live balance and return its current state."""
    record = store.load(vault_address)
    if record is None:
        raise NotFoundError(f"Vault not found: {vault_address}")
    balance = framework.get_balance(record.config.vault_address)
    return build_vault_state(record, balance, current_timestamp() if now is None else now)


def owner_dashboard(state: VaultState) -> OwnerDashboard:
    """Owner-facing totals. Only unclaimed allocations count against `unallocated`."""
    total_allocated = sum(b.allocation for b in state.beneficiaries)
    outstanding = sum(b.allocation for b in state.beneficiaries if not b.has_claimed)
    return OwnerDashboard(
        vault_address=state.config.vault_address,
        balance=state.config.total_value,
        status=state.status,
        beneficiary_count=len(state.beneficiaries),
        total_allocated=total_allocated,
        unallocated=state.config.total_value - outstanding,
        next_deadline=state.config.next_deadline,
        time_remaining=state.time_remaining,
        can_check_in=state.can_check_in,
        check_in_count=len(state.check_ins),
        claimed_count=sum(1 for b in state.beneficiaries if b.has_claimed),
    )


def beneficiary_view(state: VaultState, beneficiary_address: str) -> BeneficiaryView:
    """What a single beneficiary sees. Unknown addresses get an ineligible view."""
    wanted = beneficiary_address.lower()
    beneficiary = next((b for b in state.beneficiaries if b.address.lower() == wanted), None)
    if beneficiary is None:
        return BeneficiaryView(
            is_eligible=False,
            allocation=0,
            percentage=0.0,
            has_claimed=False,
            can_claim_now=False,
            time_until_claim=0,
        )
    return BeneficiaryView(
        is_eligible=True,
        allocation=beneficiary.allocation,
        percentage=beneficiary.percentage,
        has_claimed=beneficiary.has_claimed,
        can_claim_now=state.time_remaining == 0 and not beneficiary.has_claimed,
        time_until_claim=state.time_remaining,
        claim_tx_hash=beneficiary.claim_tx_hash,
    )


def vault_health(state: VaultState, record: VaultStorage | None = None) -> VaultHealth:
    """
    Health check over a state.

    Errors: zero balance, allocations above the balance. Warnings: deadline within an hour,
    deadline passed on a non-empty vault, unclaimed beneficiaries without an active delegation
    (needs `record`).
    """
    warnings: list[str] = []
    errors: list[str] = []
    balance = state.config.total_value

    if balance == 0:
        errors.append("Vault has zero balance")

    total_allocated = sum(b.allocation for b in state.beneficiaries if not b.has_claimed)
    if total_allocated > balance:
        errors.append(f"Total allocation ({total_allocated}) exceeds balance ({balance})")

    if 0 < state.time_remaining < DEADLINE_WARNING_SECONDS:
        warnings.append(f"Deadline approaching: {state.time_remaining} seconds remaining")

    if state.time_remaining == 0 and state.status != VaultStatus.EMPTY:
        warnings.append("Deadline passed - beneficiaries can claim")

    if record is not None:
        missing = [
            b.name
            for b in state.beneficiaries
            if not b.has_claimed
            and not any(
                d.beneficiary_address.lower() == b.address.lower() for d in active_delegations(record)
            )
        ]
        if missing:
            warnings.append(f"Beneficiaries missing active delegations: {', '.join(missing)}")

    return VaultHealth(is_healthy=not errors, warnings=tuple(warnings), errors=tuple(errors))
