"""web3.py implementation of the Delegation Framework capability."""

import sys
from typing import TYPE_CHECKING, Any

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import function_signature_to_4byte_selector, keccak, to_bytes, to_checksum_address

from inheritance_vault.constants import (
    DEPLOY_GAS_LIMIT,
    DISABLE_GAS_LIMIT,
    GAS_PRICE_WEI,
    REDEEM_GAS_LIMIT,
    SINGLE_DEFAULT_MODE,
)
from inheritance_vault.contracts import delegation_manager_contract, simple_factory_contract
from inheritance_vault.delegation import (
    delegation_abi_tuple,
    delegation_hash,
    delegation_typed_data,
    encode_execution,
    encode_permission_context,
)
from inheritance_vault.formatters import normalize_hex_str
from inheritance_vault.framework import DelegationFramework
from inheritance_vault.models import DeleGatorEnvironment, Delegation, Execution, SignedDelegation, TxReceipt

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover

DEFAULT_TIMEOUT = 30

_INITIALIZE_SELECTOR = function_signature_to_4byte_selector("initialize(address,string[],uint256[],uint256[])")


def connect(rpc_url: str, *, timeout_s: int = DEFAULT_TIMEOUT) -> "Web3":
    """Connect to an RPC endpoint. Raises RuntimeError if it does not answer."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s}))
    if not w3.is_connected():
        raise RuntimeError(f"failed to connect to RPC at {rpc_url}")
    return w3


def _salt_bytes(salt: str) -> bytes:
    raw = to_bytes(hexstr=salt)
    if len(raw) > 32:
        raise ValueError(f"salt longer than 32 bytes: {salt}")
    return raw.rjust(32, b"\x00")


def _to_receipt(receipt: Any) -> TxReceipt:
    return TxReceipt(
        tx_hash=normalize_hex_str(receipt["transactionHash"]),
        gas_used=int(receipt["gasUsed"]),
        block_number=int(receipt["blockNumber"]),
        status=int(receipt.get("status", 1)),
    )


class Web3DelegationFramework(DelegationFramework):
    """Talks to the DelegationManager and account factory over JSON-RPC.

    Transactions are plain EOA transactions (no bundler) priced at the fixed minimum gas
    price with fixed gas limits. Each call blocks until its receipt is mined.
    """

    def __init__(self, w3: "Web3", owner_key: str, environment: DeleGatorEnvironment):
        self.w3 = w3
        self.environment = environment
        self._owner = Account.from_key(owner_key)
        self._manager = delegation_manager_contract(w3, environment)

    @property
    def owner_address(self) -> str:
        return self._owner.address

    def _send(self, account, tx: dict[str, Any]) -> TxReceipt:
        tx.setdefault("from", account.address)
        tx.setdefault("nonce", self.w3.eth.get_transaction_count(account.address))
        tx.setdefault("chainId", self.environment.chain_id)
        tx.setdefault("gasPrice", GAS_PRICE_WEI)
        if "gas" not in tx:
            tx["gas"] = self.w3.eth.estimate_gas(tx)
        signed = account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        print(f"   TX: {normalize_hex_str(tx_hash)}", file=sys.stderr)
        receipt = _to_receipt(self.w3.eth.wait_for_transaction_receipt(tx_hash))
        if receipt.status != 1:
            raise RuntimeError(f"transaction {receipt.tx_hash} reverted in block {receipt.block_number}")
        return receipt

    def _account_bytecode(self, owner_address: str) -> bytes:
        env = self.environment
        if not env.hybrid_implementation or not env.proxy_creation_code:
            raise ValueError("HybridDeleGatorImpl and ERC1967ProxyCreationCode must be set in the environment file")
        init_data = _INITIALIZE_SELECTOR + encode(
            ["address", "string[]", "uint256[]", "uint256[]"], [to_checksum_address(owner_address), [], [], []]
        )
        return to_bytes(hexstr=env.proxy_creation_code) + encode(
            ["address", "bytes"], [to_checksum_address(env.hybrid_implementation), init_data]
        )

    def account_address(self, owner_address: str, salt: str) -> str:
        if not self.environment.simple_factory:
            raise ValueError("SimpleFactory address is not configured in the environment file")
        bytecode = self._account_bytecode(owner_address)
        digest = keccak(
            b"\xff"
            + to_bytes(hexstr=self.environment.simple_factory)
            + _salt_bytes(salt)
            + keccak(bytecode)
        )
        return to_checksum_address(digest[12:])

    def is_deployed(self, address: str) -> bool:
        code = self.w3.eth.get_code(to_checksum_address(address))
        return len(code) > 0

    def deploy_account(self, owner_address: str, salt: str) -> TxReceipt:
        factory = simple_factory_contract(self.w3, self.environment)
        tx = factory.functions.deploy(self._account_bytecode(owner_address), _salt_bytes(salt)).build_transaction(
            {
                "from": self._owner.address,
                "gas": DEPLOY_GAS_LIMIT,
                "gasPrice": GAS_PRICE_WEI,
                "nonce": self.w3.eth.get_transaction_count(self._owner.address),
                "chainId": self.environment.chain_id,
            }
        )
        return self._send(self._owner, tx)

    def fund(self, address: str, amount: int) -> TxReceipt:
        # Smart accounts need more than 21000 gas to receive, so let the node estimate.
        return self._send(self._owner, {"to": to_checksum_address(address), "value": int(amount)})

    def get_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(to_checksum_address(address)))

    def sign_delegation(self, delegation: Delegation) -> SignedDelegation:
        typed = delegation_typed_data(
            delegation,
            chain_id=self.environment.chain_id,
            delegation_manager=self.environment.delegation_manager,
        )
        signable = encode_typed_data(full_message=typed)
        signed = self._owner.sign_message(signable)
        return SignedDelegation(delegation=delegation, signature=normalize_hex_str(signed.signature))

    def delegation_hash(self, delegation: Delegation) -> str:
        return delegation_hash(delegation)

    def is_delegation_disabled(self, delegation_hash: str) -> bool:
        return bool(self._manager.functions.disabledDelegations(to_bytes(hexstr=delegation_hash)).call())

    def disable_delegation(self, signed: SignedDelegation) -> TxReceipt:
        tx = self._manager.functions.disableDelegation(delegation_abi_tuple(signed)).build_transaction(
            {
                "from": self._owner.address,
                "gas": DISABLE_GAS_LIMIT,
                "gasPrice": GAS_PRICE_WEI,
                "nonce": self.w3.eth.get_transaction_count(self._owner.address),
                "chainId": self.environment.chain_id,
            }
        )
        return self._send(self._owner, tx)

    def redeem_delegation(self, signed: SignedDelegation, execution: Execution, redeemer_key: str) -> TxReceipt:
        redeemer = Account.from_key(redeemer_key)
        tx = self._manager.functions.redeemDelegations(
            [encode_permission_context([signed])],
            [to_bytes(hexstr=SINGLE_DEFAULT_MODE)],
            [encode_execution(execution)],
        ).build_transaction(
            {
                "from": redeemer.address,
                "gas": REDEEM_GAS_LIMIT,
                "gasPrice": GAS_PRICE_WEI,
                "nonce": self.w3.eth.get_transaction_count(redeemer.address),
                "chainId": self.environment.chain_id,
            }
        )
        return self._send(redeemer, tx)
