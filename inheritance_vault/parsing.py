"""Parsing and serialization of persisted vault records.

Records are plain JSON. Amounts (allocation, total value, gas, salts) are written as
decimal strings so that values above 2**53 survive any JSON reader unchanged.
"""

import json
from typing import Any

from inheritance_vault.constants import STORAGE_FORMAT_VERSION
from inheritance_vault.formatters import as_int
from inheritance_vault.models import (
    Beneficiary,
    Caveat,
    CheckInRecord,
    Delegation,
    SignedDelegation,
    StoredDelegation,
    VaultConfig,
    VaultStorage,
    asset_from_address,
)
from inheritance_vault.periods import parse_period_unit


def _big(value: int) -> str:
    return str(int(value))


def _opt_int(value: Any) -> int | None:
    return None if value is None else as_int(value)


def delegation_to_json(signed: SignedDelegation) -> dict[str, Any]:
    d = signed.delegation
    return {
        "delegate": d.delegate,
        "delegator": d.delegator,
        "authority": d.authority,
        "caveats": [{"enforcer": c.enforcer, "terms": c.terms, "args": c.args} for c in d.caveats],
        "salt": _big(d.salt),
        "signature": signed.signature,
    }


def parse_delegation(data: dict[str, Any]) -> SignedDelegation:
    delegation = Delegation(
        delegate=str(data["delegate"]),
        delegator=str(data["delegator"]),
        authority=str(data["authority"]),
        caveats=tuple(
            Caveat(enforcer=str(c["enforcer"]), terms=str(c["terms"]), args=str(c.get("args", "0x")))
            for c in data.get("caveats", [])
        ),
        salt=as_int(data.get("salt")),
    )
    return SignedDelegation(delegation=delegation, signature=str(data.get("signature", "0x")))


def vault_storage_to_json(record: VaultStorage) -> dict[str, Any]:
    """Convert a record to a JSON-compatible dict."""
    c = record.config
    return {
        "format": STORAGE_FORMAT_VERSION,
        "version": record.version,
        "config": {
            "vaultAddress": c.vault_address,
            "ownerAddress": c.owner_address,
            "checkInPeriod": c.check_in_period,
            "checkInPeriodUnit": c.check_in_period_unit.value,
            "lastCheckIn": c.last_check_in,
            "nextDeadline": c.next_deadline,
            "totalValue": _big(c.total_value),
            "tokens": list(c.tokens),
            "createdAt": c.created_at,
            "salt": c.salt,
        },
        "beneficiaries": [
            {
                "address": b.address,
                "name": b.name,
                "allocation": _big(b.allocation),
                "percentage": b.percentage,
                "tokenAddress": b.asset.address,
                "delegation": delegation_to_json(b.delegation) if b.delegation else None,
                "delegationHash": b.delegation_hash,
                "hasClaimed": b.has_claimed,
                "claimTxHash": b.claim_tx_hash,
                "claimTimestamp": b.claim_timestamp,
            }
            for b in record.beneficiaries
        ],
        "delegations": [
            {
                "beneficiaryAddress": d.beneficiary_address,
                "delegation": delegation_to_json(d.delegation),
                "hash": d.hash,
                "createdAt": d.created_at,
                "deadline": d.deadline,
                "epoch": d.epoch,
                "isDisabled": d.is_disabled,
            }
            for d in record.delegations
        ],
        "checkIns": [
            {
                "timestamp": r.timestamp,
                "txHash": r.tx_hash,
                "newDeadline": r.new_deadline,
                "disabledDelegationCount": r.disabled_delegation_count,
                "createdDelegationCount": r.created_delegation_count,
                "gasUsed": _big(r.gas_used),
                "failedDisables": list(r.failed_disables),
            }
            for r in record.check_ins
        ],
        "lastUpdated": record.last_updated,
    }


def parse_vault_storage(data: dict[str, Any]) -> VaultStorage:
    """Parse a JSON dict back into a VaultStorage record."""
    cfg = data["config"]
    config = VaultConfig(
        vault_address=str(cfg["vaultAddress"]),
        owner_address=str(cfg["ownerAddress"]),
        check_in_period=as_int(cfg["checkInPeriod"]),
        check_in_period_unit=parse_period_unit(cfg.get("checkInPeriodUnit", "days")),
        last_check_in=as_int(cfg["lastCheckIn"]),
        next_deadline=as_int(cfg["nextDeadline"]),
        total_value=as_int(cfg.get("totalValue")),
        created_at=as_int(cfg.get("createdAt")),
        tokens=[str(t) for t in cfg.get("tokens", [])],
        salt=str(cfg.get("salt", "0x")),
    )

    beneficiaries = [
        Beneficiary(
            address=str(b["address"]),
            name=str(b["name"]),
            allocation=as_int(b["allocation"]),
            percentage=float(b.get("percentage", 0)),
            asset=asset_from_address(b.get("tokenAddress")),
            delegation=parse_delegation(b["delegation"]) if b.get("delegation") else None,
            delegation_hash=b.get("delegationHash"),
            has_claimed=bool(b.get("hasClaimed", False)),
            claim_tx_hash=b.get("claimTxHash"),
            claim_timestamp=_opt_int(b.get("claimTimestamp")),
        )
        for b in data.get("beneficiaries", [])
    ]

    delegations = [
        StoredDelegation(
            beneficiary_address=str(d["beneficiaryAddress"]),
            delegation=parse_delegation(d["delegation"]),
            hash=str(d["hash"]),
            created_at=as_int(d.get("createdAt")),
            deadline=as_int(d.get("deadline")),
            epoch=as_int(d.get("epoch")),
            is_disabled=bool(d.get("isDisabled", False)),
        )
        for d in data.get("delegations", [])
    ]

    check_ins = [
        CheckInRecord(
            timestamp=as_int(r["timestamp"]),
            tx_hash=str(r.get("txHash", "0x0")),
            new_deadline=as_int(r["newDeadline"]),
            disabled_delegation_count=as_int(r.get("disabledDelegationCount")),
            created_delegation_count=as_int(r.get("createdDelegationCount")),
            gas_used=as_int(r.get("gasUsed")),
            failed_disables=tuple(str(h) for h in r.get("failedDisables", [])),
        )
        for r in data.get("checkIns", [])
    ]

    return VaultStorage(
        config=config,
        beneficiaries=beneficiaries,
        delegations=delegations,
        check_ins=check_ins,
        last_updated=as_int(data.get("lastUpdated")),
        version=as_int(data.get("version")),
    )


def dumps_vault_storage(record: VaultStorage) -> str:
    """Serialize a record as pretty-printed JSON."""
    return json.dumps(vault_storage_to_json(record), ensure_ascii=False, indent=2)


def loads_vault_storage(text: str | bytes) -> VaultStorage:
    """Parse JSON text into a record."""
    data = json.loads(text)
    if not isinstance(data, dict) or "config" not in data:
        raise ValueError("Invalid vault data: missing config")
    return parse_vault_storage(data)
