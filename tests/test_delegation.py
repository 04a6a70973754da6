import pytest
from conftest import ALICE, ENVIRONMENT, TOKEN
from eth_abi import decode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

from inheritance_vault.constants import DELEGATION_ABI_TYPE, ROOT_AUTHORITY, TIMESTAMP_MAX_BEFORE
from inheritance_vault.delegation import (
    ERC20_TRANSFER_SELECTOR,
    CaveatBuilder,
    build_inheritance_caveats,
    build_transfer_execution,
    create_delegation,
    delegation_hash,
    delegation_typed_data,
    encode_execution,
    encode_permission_context,
    erc20_transfer_amount_terms,
    limited_calls_terms,
    native_transfer_amount_terms,
    timestamp_terms,
)
from inheritance_vault.models import NativeAsset, SignedDelegation, TokenAsset

VAULT = "0x" + "5a" * 20


def test_timestamp_terms_packs_two_uint128():
    terms = timestamp_terms(1_700_000_000)
    assert terms == "0x" + f"{1_700_000_000:032x}" + f"{TIMESTAMP_MAX_BEFORE:032x}"
    with pytest.raises(ValueError):
        timestamp_terms(10, 10)
    with pytest.raises(ValueError):
        timestamp_terms(-1)


def test_amount_and_call_terms():
    assert limited_calls_terms(1) == "0x" + "00" * 31 + "01"
    assert native_transfer_amount_terms(255) == "0x" + "00" * 31 + "ff"
    assert erc20_transfer_amount_terms(TOKEN, 1) == "0x" + "70" * 20 + "00" * 31 + "01"
    for bad in (lambda: limited_calls_terms(0), lambda: native_transfer_amount_terms(0)):
        with pytest.raises(ValueError):
            bad()


def test_caveat_builder():
    builder = CaveatBuilder(ENVIRONMENT).add_caveat("limitedCalls", limit=1)
    with pytest.raises(ValueError, match="Unknown caveat"):
        builder.add_caveat("allowedTargets", targets=[])
    caveats = builder.build()
    assert len(caveats) == 1
    assert caveats[0].enforcer == ENVIRONMENT.caveat_enforcers["limitedCalls"]
    with pytest.raises(RuntimeError):
        builder.build()
    with pytest.raises(RuntimeError):
        builder.add_caveat("limitedCalls", limit=1)


def test_caveat_builder_requires_enforcer_address():
    env = ENVIRONMENT.__class__(chain_id=1, delegation_manager=ENVIRONMENT.delegation_manager)
    with pytest.raises(ValueError, match="No enforcer address"):
        CaveatBuilder(env).add_caveat("timestamp", after_threshold=1)


def test_inheritance_caveats_order():
    native = build_inheritance_caveats(ENVIRONMENT, deadline=100, allocation=5, asset=NativeAsset())
    assert [c.enforcer for c in native] == [
        ENVIRONMENT.caveat_enforcers["timestamp"],
        ENVIRONMENT.caveat_enforcers["limitedCalls"],
        ENVIRONMENT.caveat_enforcers["nativeTokenTransferAmount"],
    ]
    token = build_inheritance_caveats(ENVIRONMENT, deadline=100, allocation=5, asset=TokenAsset(TOKEN))
    assert token[2].enforcer == ENVIRONMENT.caveat_enforcers["erc20TransferAmount"]


def test_delegation_hash_depends_on_salt_and_terms():
    caveats = build_inheritance_caveats(ENVIRONMENT, deadline=100, allocation=5, asset=NativeAsset())
    d0 = create_delegation(delegator=VAULT, delegate=ALICE, caveats=caveats, salt=0)
    d1 = create_delegation(delegator=VAULT, delegate=ALICE, caveats=caveats, salt=1)
    assert d0.authority == ROOT_AUTHORITY
    assert d0.delegate == to_checksum_address(ALICE)
    assert delegation_hash(d0) == delegation_hash(
        create_delegation(delegator=VAULT.upper().replace("0X", "0x"), delegate=ALICE, caveats=caveats)
    )
    assert delegation_hash(d0) != delegation_hash(d1)
    later = build_inheritance_caveats(ENVIRONMENT, deadline=200, allocation=5, asset=NativeAsset())
    assert delegation_hash(d0) != delegation_hash(
        create_delegation(delegator=VAULT, delegate=ALICE, caveats=later, salt=0)
    )
    assert len(delegation_hash(d0)) == 66


def test_typed_data_signature_recovers_signer():
    account = Account.create()
    caveats = build_inheritance_caveats(ENVIRONMENT, deadline=100, allocation=5, asset=NativeAsset())
    delegation = create_delegation(delegator=VAULT, delegate=ALICE, caveats=caveats, salt=3)
    typed = delegation_typed_data(delegation, chain_id=10143, delegation_manager=ENVIRONMENT.delegation_manager)
    assert typed["domain"]["name"] == "DelegationManager"
    assert typed["message"]["salt"] == 3

    signable = encode_typed_data(full_message=typed)
    signed = account.sign_message(signable)
    assert Account.recover_message(signable, signature=signed.signature) == account.address


def test_transfer_executions():
    native = build_transfer_execution(beneficiary_address=ALICE, allocation=7, asset=NativeAsset())
    assert native.target == to_checksum_address(ALICE)
    assert native.value == 7
    assert native.call_data == "0x"
    encoded = encode_execution(native)
    assert len(encoded) == 52
    assert encoded[:20] == bytes.fromhex(ALICE[2:])

    token = build_transfer_execution(beneficiary_address=ALICE, allocation=7, asset=TokenAsset(TOKEN))
    assert token.target == to_checksum_address(TOKEN)
    assert token.value == 0
    assert token.call_data.startswith("0x" + ERC20_TRANSFER_SELECTOR.hex())
    assert len(encode_execution(token)) == 52 + 4 + 64


def test_permission_context_round_trips_through_abi():
    caveats = build_inheritance_caveats(ENVIRONMENT, deadline=100, allocation=5, asset=NativeAsset())
    delegation = create_delegation(delegator=VAULT, delegate=ALICE, caveats=caveats, salt=2)
    signed = SignedDelegation(delegation=delegation, signature="0x" + "11" * 65)

    (chain,) = decode([f"{DELEGATION_ABI_TYPE}[]"], encode_permission_context([signed]))
    assert len(chain) == 1
    delegate, delegator, authority, decoded_caveats, salt, signature = chain[0]
    assert delegate.lower() == ALICE
    assert delegator.lower() == VAULT
    assert authority == b"\xff" * 32
    assert len(decoded_caveats) == 3
    assert salt == 2
    assert signature == b"\x11" * 65
