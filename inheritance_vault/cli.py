"""CLI and main logic."""

import argparse
import json
import os
import sys
from pathlib import Path

from inheritance_vault.constants import DEFAULT_CHECK_IN_PERIOD, DEFAULT_RPC_URL, ENV_PRIVATE_KEY, ENV_RPC_URL
from inheritance_vault.errors import ValidationError, VaultError
from inheritance_vault.formatters import as_int, format_native, format_timestamp
from inheritance_vault.models import BeneficiaryInput, PeriodUnit, VaultState, asset_from_address
from inheritance_vault.store import FileVaultStore, VaultStore, resolve_store

ENV_BENEFICIARY_PRIVATE_KEY = "BENEFICIARY_PRIVATE_KEY"


def parse_beneficiary(value: str) -> BeneficiaryInput:
    """Parse `ADDRESS:NAME:ALLOCATION_WEI[:TOKEN_ADDRESS]`."""
    parts = value.split(":")
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(f"expected ADDRESS:NAME:ALLOCATION[:TOKEN], got {value!r}")
    try:
        allocation = as_int(parts[2])
    except ValueError as ex:
        raise argparse.ArgumentTypeError(f"invalid allocation {parts[2]!r}") from ex
    return BeneficiaryInput(
        address=parts[0].strip(),
        name=parts[1].strip(),
        allocation=allocation,
        asset=asset_from_address(parts[3].strip() if len(parts) == 4 else None),
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Inheritance vault: a dead man's switch built on time-locked delegations.")
    p.add_argument(
        "--rpc-url",
        default=None,
        help=f"Execution-layer RPC URL. Defaults to the {ENV_RPC_URL} environment variable, then {DEFAULT_RPC_URL}.",
    )
    p.add_argument(
        "--environment",
        default=None,
        help="JSON file with Delegation Framework contract addresses. Defaults to VAULT_ENVIRONMENT_FILE.",
    )
    p.add_argument("--storage", choices=("file", "memory"), default=None, help="Storage backend (VAULT_STORAGE).")
    p.add_argument("--storage-dir", default=None, help="Directory for the file backend (VAULT_STORAGE_DIR).")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("create", help="Deploy and register a new vault.")
    c.add_argument("--owner", default=None, help="Owner address. Must match PRIVATE_KEY; defaults to its address.")
    c.add_argument("--period", type=int, default=DEFAULT_CHECK_IN_PERIOD)
    c.add_argument("--unit", choices=[u.value for u in PeriodUnit], default=PeriodUnit.DAYS.value)
    c.add_argument("--funding", type=as_int, default=0, help="Initial funding in wei.")

    f = sub.add_parser("fund", help="Send native funds from the owner into a vault.")
    f.add_argument("vault")
    f.add_argument("--amount", type=as_int, required=True, help="Amount in wei.")

    s = sub.add_parser("setup", help="Replace all beneficiaries and issue new delegations.")
    s.add_argument("vault")
    s.add_argument("--beneficiary", "-b", type=parse_beneficiary, action="append", required=True)
    s.add_argument("--deadline", type=int, default=None, help="Unix deadline. Defaults to the vault's next deadline.")

    a = sub.add_parser("add", help="Add one beneficiary.")
    a.add_argument("vault")
    a.add_argument("beneficiary", type=parse_beneficiary)

    r = sub.add_parser("remove", help="Remove one beneficiary and disable their delegation.")
    r.add_argument("vault")
    r.add_argument("address")

    k = sub.add_parser("checkin", help="Check in as the owner and extend the deadline.")
    k.add_argument("vault")
    k.add_argument("--period", type=int, default=None)
    k.add_argument("--unit", choices=[u.value for u in PeriodUnit], default=None)

    cl = sub.add_parser("claim", help=f"Claim as a beneficiary (key from {ENV_BENEFICIARY_PRIVATE_KEY}).")
    cl.add_argument("vault")

    st = sub.add_parser("status", help="Show vault status.")
    st.add_argument("vault")
    st.add_argument("--json", action="store_true", help="Print a JSON envelope instead of the summary.")
    st.add_argument("--beneficiary", default=None, help="Also show the view of this beneficiary.")

    sub.add_parser("list", help="List stored vaults.")

    e = sub.add_parser("export", help="Print a stored vault record as JSON.")
    e.add_argument("vault")

    i = sub.add_parser("import", help="Store a vault record from an exported JSON file.")
    i.add_argument("file")

    d = sub.add_parser("delete", help="Delete a stored vault record.")
    d.add_argument("vault")
    return p.parse_args(argv)


def _store(args: argparse.Namespace) -> VaultStore:
    if args.storage_dir:
        return FileVaultStore(args.storage_dir)
    return resolve_store(args.storage)


def _engine(args: argparse.Namespace, store: VaultStore, *, key_env: str = ENV_PRIVATE_KEY):
    """Build a VaultEngine on a web3 connection. Network modules are imported lazily."""
    from inheritance_vault.blockchain import Web3DelegationFramework, connect  # pylint: disable=import-outside-toplevel
    from inheritance_vault.contracts import load_environment  # pylint: disable=import-outside-toplevel
    from inheritance_vault.lifecycle import VaultEngine  # pylint: disable=import-outside-toplevel

    private_key = os.getenv(key_env)
    if not private_key:
        raise ValidationError(f"Private key is required. Set the {key_env} environment variable.")
    rpc_url = args.rpc_url or os.getenv(ENV_RPC_URL) or DEFAULT_RPC_URL
    w3 = connect(rpc_url)
    environment = load_environment(args.environment, chain_id=int(w3.eth.chain_id))
    return VaultEngine(Web3DelegationFramework(w3, private_key, environment), store)


def vault_state_to_json(state: VaultState) -> dict:
    """Serializable view of a VaultState; amounts as decimal strings, delegations omitted."""
    c = state.config
    return {
        "config": {
            "vaultAddress": c.vault_address,
            "ownerAddress": c.owner_address,
            "checkInPeriod": c.check_in_period,
            "checkInPeriodUnit": c.check_in_period_unit.value,
            "lastCheckIn": c.last_check_in,
            "nextDeadline": c.next_deadline,
            "totalValue": str(c.total_value),
            "createdAt": c.created_at,
        },
        "beneficiaries": [
            {
                "address": b.address,
                "name": b.name,
                "allocation": str(b.allocation),
                "percentage": b.percentage,
                "tokenAddress": b.asset.address,
                "delegationHash": b.delegation_hash,
                "hasClaimed": b.has_claimed,
                "claimTxHash": b.claim_tx_hash,
                "claimTimestamp": b.claim_timestamp,
            }
            for b in state.beneficiaries
        ],
        "checkIns": [
            {
                "timestamp": r.timestamp,
                "txHash": r.tx_hash,
                "newDeadline": r.new_deadline,
                "disabledDelegationCount": r.disabled_delegation_count,
                "createdDelegationCount": r.created_delegation_count,
                "gasUsed": str(r.gas_used),
            }
            for r in state.check_ins
        ],
        "status": state.status.value,
        "timeRemaining": state.time_remaining,
        "canCheckIn": state.can_check_in,
    }


def _run(args: argparse.Namespace) -> int:
    store = _store(args)

    if args.command == "list":
        vaults = store.list()
        print(f"📋 Found {len(vaults)} vault(s) in storage", file=sys.stderr)
        for vault in vaults:
            print(vault)
        return 0

    if args.command == "export":
        text = store.export(args.vault)
        if text is None:
            print(f"Error: vault not found: {args.vault}", file=sys.stderr)
            return 1
        print(text)
        return 0

    if args.command == "import":
        vault = store.import_(Path(args.file).read_text(encoding="utf-8"))
        print(f"✅ Imported vault {vault}", file=sys.stderr)
        return 0

    if args.command == "delete":
        if not store.delete(args.vault):
            print(f"ℹ️  Nothing to delete for {args.vault}", file=sys.stderr)
        return 0

    if args.command == "claim":
        from eth_account import Account  # pylint: disable=import-outside-toplevel

        engine = _engine(args, store, key_env=ENV_BENEFICIARY_PRIVATE_KEY)
        key = os.environ[ENV_BENEFICIARY_PRIVATE_KEY]
        result = engine.claim(args.vault, Account.from_key(key).address, key)
        print(f"✅ Claimed {format_native(result.amount)}  •  TX: {result.tx_hash}  •  gas: {result.gas_used}")
        return 0

    engine = _engine(args, store)

    if args.command == "create":
        record = engine.create_vault(args.owner, args.period, args.unit, args.funding)
        print(record.config.vault_address)
        return 0

    if args.command == "fund":
        balance = engine.fund_vault(args.vault, args.amount)
        print(f"Balance: {format_native(balance)}")
        return 0

    if args.command == "setup":
        engine.setup_beneficiaries(args.vault, args.beneficiary, args.deadline)
        return 0

    if args.command == "add":
        engine.add_beneficiary(args.vault, args.beneficiary)
        return 0

    if args.command == "remove":
        engine.remove_beneficiary(args.vault, args.address)
        return 0

    if args.command == "checkin":
        entry = engine.check_in(args.vault, args.period, args.unit)
        print(f"New deadline: {format_timestamp(entry.new_deadline)}")
        return 0

    if args.command == "status":
        from inheritance_vault.console import (  # pylint: disable=import-outside-toplevel
            print_owner_dashboard,
            print_vault_health,
            print_vault_summary,
        )
        from inheritance_vault.status import (  # pylint: disable=import-outside-toplevel
            beneficiary_view,
            owner_dashboard,
            vault_health,
        )

        state = engine.status(args.vault)
        if args.json:
            payload = {"success": True, "status": vault_state_to_json(state)}
            if args.beneficiary:
                view = beneficiary_view(state, args.beneficiary)
                payload["beneficiary"] = {**view.__dict__, "allocation": str(view.allocation)}
            print(json.dumps(payload, indent=2))
            return 0
        print_vault_summary(state)
        print_owner_dashboard(owner_dashboard(state))
        print_vault_health(vault_health(state, store.load(args.vault)))
        if args.beneficiary:
            view = beneficiary_view(state, args.beneficiary)
            print(f"\n🙋 Beneficiary {args.beneficiary}: eligible={view.is_eligible} can_claim_now={view.can_claim_now}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")  # pragma: no cover


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        return _run(args)
    except (ValidationError, ValueError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2
    except (VaultError, RuntimeError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
