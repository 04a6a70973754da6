"""Console output formatting."""

from inheritance_vault.formatters import format_native, format_period, format_timestamp
from inheritance_vault.models import OwnerDashboard, VaultHealth, VaultState, VaultStatus
from inheritance_vault.periods import remaining

_STATUS_EMOJI = {
    VaultStatus.CREATED: "🆕",
    VaultStatus.ACTIVE: "🟢",
    VaultStatus.CLAIMABLE: "🔓",
    VaultStatus.EMPTY: "💤",
    VaultStatus.DISABLED: "🟠",
}


def print_vault_summary(state: VaultState, *, now: int | None = None, recent_check_ins: int = 3) -> None:
    """Print a human-readable vault summary."""
    config = state.config
    print("\n" + "=" * 60)
    print("🏦 VAULT SUMMARY")
    print("=" * 60)

    print("\n📍 Basic Info:")
    print(f"   Vault Address: {config.vault_address}")
    print(f"   Owner: {config.owner_address}")
    print(f"   Status: {_STATUS_EMOJI[state.status]} {state.status.value.upper()}")
    print(f"   Created: {format_timestamp(config.created_at)}")

    print("\n💰 Balance:")
    print(f"   Total: {format_native(config.total_value)} ({config.total_value} wei)")

    print("\n⏰ Check-In:")
    print(f"   Period: {format_period(config.check_in_period, config.check_in_period_unit)}")
    print(f"   Last Check-In: {format_timestamp(config.last_check_in)}")
    print(f"   Next Deadline: {format_timestamp(config.next_deadline)}")
    time_calc = remaining(config.next_deadline, now)
    if time_calc.is_past:
        print(f"   ⚠️  DEADLINE PASSED {time_calc.human_readable} ago")
    else:
        print(f"   ⏳ Time Remaining: {time_calc.human_readable}")

    print("\n👥 Beneficiaries:")
    if not state.beneficiaries:
        print("   None")
    for b in state.beneficiaries:
        claim_status = "✅ CLAIMED" if b.has_claimed else "⏳ PENDING"
        asset = "native" if b.asset.is_native else b.asset.address
        print(f"   {b.name}:")
        print(f"      Address: {b.address}")
        print(f"      Allocation: {b.allocation} wei ({b.percentage:.2f}%, {asset})")
        print(f"      Status: {claim_status}")
        if b.has_claimed and b.claim_tx_hash:
            print(f"      Claim TX: {b.claim_tx_hash}")

    print("\n📜 Check-In History:")
    if not state.check_ins:
        print("   No check-ins yet")
    else:
        print(f"   Total: {len(state.check_ins)} check-in(s)")
        for entry in reversed(state.check_ins[-recent_check_ins:]):
            print(f"   {format_timestamp(entry.timestamp)}")
            print(f"      TX: {entry.tx_hash}")
            print(
                f"      Disabled: {entry.disabled_delegation_count}, Created: {entry.created_delegation_count}"
            )
            if entry.failed_disables:
                print(f"      ⚠️  Failed to disable: {len(entry.failed_disables)}")

    print("\n" + "=" * 60)


def print_owner_dashboard(dashboard: OwnerDashboard) -> None:
    print("\n📊 OWNER DASHBOARD")
    print("   " + "─" * 50)
    print(f"   Vault: {dashboard.vault_address}")
    print(f"   Status: {_STATUS_EMOJI[dashboard.status]} {dashboard.status.value}")
    print(f"   Balance: {format_native(dashboard.balance)}")
    print(f"   Allocated: {format_native(dashboard.total_allocated)}  •  Unallocated: {format_native(dashboard.unallocated)}")
    print(f"   Beneficiaries: {dashboard.beneficiary_count} ({dashboard.claimed_count} claimed)")
    print(f"   Check-ins: {dashboard.check_in_count}  •  Can check in: {'yes' if dashboard.can_check_in else 'no'}")


def print_vault_health(health: VaultHealth) -> None:
    print("\n🩺 HEALTH: " + ("✅ healthy" if health.is_healthy else "❌ unhealthy"))
    for error in health.errors:
        print(f"   ❌ {error}")
    for warning in health.warnings:
        print(f"   ⚠️  {warning}")
