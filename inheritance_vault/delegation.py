"""Construction and encoding of inheritance delegations.

Everything here is pure: no network access and no key material. Signing and
submission live in the DelegationFramework implementations.

An inheritance delegation carries three caveats, in this order:

1. timestamp: not valid before the deadline, valid forever after it
2. limitedCalls: redeemable exactly once
3. a transfer-amount cap equal to the allocation (native or ERC-20)
"""

from typing import Any

from eth_abi import encode
from eth_abi.packed import encode_packed
from eth_utils import function_signature_to_4byte_selector, keccak, to_bytes, to_checksum_address

from inheritance_vault.constants import (
    DELEGATION_ABI_TYPE,
    DELEGATION_DOMAIN_NAME,
    DELEGATION_DOMAIN_VERSION,
    DELEGATION_EIP712_TYPES,
    ROOT_AUTHORITY,
    TIMESTAMP_MAX_BEFORE,
)
from inheritance_vault.formatters import normalize_hex_str
from inheritance_vault.models import Asset, Caveat, DeleGatorEnvironment, Delegation, Execution, SignedDelegation

DELEGATION_TYPEHASH = keccak(
    text="Delegation(address delegate,address delegator,bytes32 authority,Caveat[] caveats,uint256 salt)"
    "Caveat(address enforcer,bytes terms)"
)
CAVEAT_TYPEHASH = keccak(text="Caveat(address enforcer,bytes terms)")
ERC20_TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")


def _hex_bytes(value: str) -> bytes:
    return to_bytes(hexstr=value) if value not in ("", "0x") else b""


def timestamp_terms(after_threshold: int, before_threshold: int = TIMESTAMP_MAX_BEFORE) -> str:
    """Terms for the timestamp enforcer: `uint128 after || uint128 before`."""
    if after_threshold < 0 or before_threshold < 0:
        raise ValueError("timestamp thresholds must be non-negative")
    if before_threshold and after_threshold >= before_threshold:
        raise ValueError(f"after threshold {after_threshold} must be before {before_threshold}")
    return normalize_hex_str(encode_packed(["uint128", "uint128"], [after_threshold, before_threshold]))


def limited_calls_terms(limit: int) -> str:
    """Terms for the limited-calls enforcer: `uint256 limit`."""
    if limit <= 0:
        raise ValueError("limit must be > 0")
    return normalize_hex_str(encode(["uint256"], [limit]))


def native_transfer_amount_terms(max_amount: int) -> str:
    """Terms for the native-token transfer-amount enforcer: `uint256 allowance`."""
    if max_amount <= 0:
        raise ValueError("max_amount must be > 0")
    return normalize_hex_str(encode(["uint256"], [max_amount]))


def erc20_transfer_amount_terms(token_address: str, max_amount: int) -> str:
    """Terms for the ERC-20 transfer-amount enforcer: `address token || uint256 allowance`."""
    if max_amount <= 0:
        raise ValueError("max_amount must be > 0")
    return normalize_hex_str(encode_packed(["address", "uint256"], [to_checksum_address(token_address), max_amount]))


class CaveatBuilder:
    """Accumulates caveats against a deployment's enforcer addresses. A builder builds once."""

    _TERMS = {
        "timestamp": lambda p: timestamp_terms(p["after_threshold"], p.get("before_threshold", TIMESTAMP_MAX_BEFORE)),
        "limitedCalls": lambda p: limited_calls_terms(p["limit"]),
        "nativeTokenTransferAmount": lambda p: native_transfer_amount_terms(p["max_amount"]),
        "erc20TransferAmount": lambda p: erc20_transfer_amount_terms(p["token_address"], p["max_amount"]),
    }

    def __init__(self, environment: DeleGatorEnvironment):
        self.environment = environment
        self._caveats: list[Caveat] = []
        self._built = False

    def add_caveat(self, name: str, **params: Any) -> "CaveatBuilder":
        if self._built:
            raise RuntimeError("CaveatBuilder has already been built")
        if name not in self._TERMS:
            raise ValueError(f"Unknown caveat: {name}")
        enforcer = self.environment.caveat_enforcers.get(name)
        if not enforcer:
            raise ValueError(f"No enforcer address configured for caveat '{name}'")
        self._caveats.append(Caveat(enforcer=enforcer, terms=self._TERMS[name](params)))
        return self

    def build(self) -> tuple[Caveat, ...]:
        if self._built:
            raise RuntimeError("CaveatBuilder has already been built")
        self._built = True
        return tuple(self._caveats)


def build_inheritance_caveats(
    environment: DeleGatorEnvironment, *, deadline: int, allocation: int, asset: Asset
) -> tuple[Caveat, ...]:
    """Time lock + single use + amount cap for one beneficiary."""
    builder = CaveatBuilder(environment)
    builder.add_caveat("timestamp", after_threshold=deadline, before_threshold=TIMESTAMP_MAX_BEFORE)
    builder.add_caveat("limitedCalls", limit=1)
    if asset.is_native:
        builder.add_caveat("nativeTokenTransferAmount", max_amount=allocation)
    else:
        builder.add_caveat("erc20TransferAmount", token_address=asset.address, max_amount=allocation)
    return builder.build()


def create_delegation(*, delegator: str, delegate: str, caveats: tuple[Caveat, ...], salt: int = 0) -> Delegation:
    """Root delegation from the vault to a beneficiary."""
    return Delegation(
        delegate=to_checksum_address(delegate),
        delegator=to_checksum_address(delegator),
        authority=ROOT_AUTHORITY,
        caveats=tuple(caveats),
        salt=int(salt),
    )


def caveat_hash(caveat: Caveat) -> bytes:
    return keccak(
        encode(
            ["bytes32", "address", "bytes32"],
            [CAVEAT_TYPEHASH, to_checksum_address(caveat.enforcer), keccak(_hex_bytes(caveat.terms))],
        )
    )


def delegation_hash(delegation: Delegation) -> str:
    """
    EIP-712 struct hash of a delegation.

    This is the key the DelegationManager uses for `disabledDelegations`, so it identifies
    a delegation across the off-chain record and the chain.
    """
    caveats_hash = keccak(b"".join(caveat_hash(c) for c in delegation.caveats))
    return normalize_hex_str(
        keccak(
            encode(
                ["bytes32", "address", "address", "bytes32", "bytes32", "uint256"],
                [
                    DELEGATION_TYPEHASH,
                    to_checksum_address(delegation.delegate),
                    to_checksum_address(delegation.delegator),
                    _hex_bytes(delegation.authority),
                    caveats_hash,
                    delegation.salt,
                ],
            )
        )
    )


def delegation_typed_data(delegation: Delegation, *, chain_id: int, delegation_manager: str) -> dict[str, Any]:
    """Full EIP-712 message for signing a delegation."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            **DELEGATION_EIP712_TYPES,
        },
        "primaryType": "Delegation",
        "domain": {
            "name": DELEGATION_DOMAIN_NAME,
            "version": DELEGATION_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(delegation_manager),
        },
        "message": {
            "delegate": to_checksum_address(delegation.delegate),
            "delegator": to_checksum_address(delegation.delegator),
            "authority": _hex_bytes(delegation.authority),
            "caveats": [
                {"enforcer": to_checksum_address(c.enforcer), "terms": _hex_bytes(c.terms)} for c in delegation.caveats
            ],
            "salt": delegation.salt,
        },
    }


def delegation_abi_tuple(signed: SignedDelegation) -> tuple:
    """A signed delegation as the ABI tuple the DelegationManager takes."""
    d = signed.delegation
    return (
        to_checksum_address(d.delegate),
        to_checksum_address(d.delegator),
        _hex_bytes(d.authority),
        [(to_checksum_address(c.enforcer), _hex_bytes(c.terms), _hex_bytes(c.args)) for c in d.caveats],
        d.salt,
        _hex_bytes(signed.signature),
    )


def encode_permission_context(chain: list[SignedDelegation]) -> bytes:
    """ABI-encode a delegation chain (leaf first) as one permission context."""
    return encode([f"{DELEGATION_ABI_TYPE}[]"], [[delegation_abi_tuple(s) for s in chain]])


def build_transfer_execution(*, beneficiary_address: str, allocation: int, asset: Asset) -> Execution:
    """
    Transfer of `allocation` to the beneficiary.

    Native assets send value with empty calldata; tokens call `transfer` on the token contract.
    """
    if asset.is_native:
        return Execution(target=to_checksum_address(beneficiary_address), value=allocation, call_data="0x")
    call_data = ERC20_TRANSFER_SELECTOR + encode(
        ["address", "uint256"], [to_checksum_address(beneficiary_address), allocation]
    )
    return Execution(target=to_checksum_address(asset.address), value=0, call_data=normalize_hex_str(call_data))


def encode_execution(execution: Execution) -> bytes:
    """ERC-7579 single execution calldata: `target || value || callData`."""
    return encode_packed(
        ["address", "uint256", "bytes"],
        [to_checksum_address(execution.target), execution.value, _hex_bytes(execution.call_data)],
    )
