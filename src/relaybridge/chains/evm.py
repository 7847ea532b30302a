"""web3.py client for one EVM network.

web3's HTTP provider is blocking, so every RPC call is pushed to the
default executor; the surrounding loops simply ``await`` it.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from eth_account import Account
from web3 import Web3

from ..bridge.types import BurnEvent, Network
from ..config import NetworkConfig
from ..errors import ChainRPCError
from ..logging import LogContext, get_logger
from .contracts import BRIDGE_TOKEN_ABI, BURN_EVENT_TOPIC

logger = get_logger(__name__)


class EvmChainClient:
    """RPC, signing and contract access for one network."""

    def __init__(self, config: NetworkConfig, private_key: str, web3: Optional[Web3] = None):
        self.config = config
        self.network = config.network
        self.w3 = web3 or Web3(
            Web3.HTTPProvider(
                config.rpc_url, request_kwargs={"timeout": config.request_timeout}
            )
        )
        self.contract_address = Web3.to_checksum_address(config.contract_address)
        self.contract = self.w3.eth.contract(
            address=self.contract_address, abi=BRIDGE_TOKEN_ABI
        )
        self.account = Account.from_key(private_key)
        self._context = LogContext(component="chain", network=self.network.value)

    @property
    def chain_id(self) -> int:
        return self.config.chain_id

    @property
    def operator_address(self) -> str:
        return self.account.address

    async def _call(self, description: str, func: Callable, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, functools.partial(func, *args, **kwargs)
            )
        except ChainRPCError:
            raise
        except Exception as e:
            raise ChainRPCError(
                f"{description} failed on {self.network.value}: {e}",
                network=self.network.value,
                endpoint=self.config.rpc_url,
                cause=e,
            )

    async def get_block_number(self) -> int:
        return await self._call("eth_blockNumber", lambda: self.w3.eth.block_number)

    async def get_burn_events(self, from_block: int, to_block: int) -> List[BurnEvent]:
        """Decoded ``TokensBurned`` logs in ``[from_block, to_block]``, in log order."""
        logs = await self._call(
            "eth_getLogs",
            self.w3.eth.get_logs,
            {
                "address": self.contract_address,
                "topics": [BURN_EVENT_TOPIC],
                "fromBlock": from_block,
                "toBlock": to_block,
            },
        )

        events = []
        decoder = self.contract.events.TokensBurned()
        for log in logs:
            decoded = decoder.process_log(log)
            events.append(
                BurnEvent(
                    network=self.network,
                    user=decoded["args"]["user"],
                    amount=int(decoded["args"]["amount"]),
                    tx_hash=Web3.to_hex(log["transactionHash"]),
                    block_number=int(log["blockNumber"]),
                    log_index=int(log["logIndex"]),
                )
            )
        return events

    def encode_mint(self, user: str, amount: int) -> str:
        """ABI-encoded calldata for ``mint(user, amount)``."""
        return self.contract.encode_abi(
            "mint", args=[Web3.to_checksum_address(user), amount]
        )

    async def sign_call(self, to: str, data: str, gas_limit: Optional[int] = None) -> str:
        """Sign a call from the operator account; returns the raw transaction hex."""
        nonce = await self._call(
            "eth_getTransactionCount",
            self.w3.eth.get_transaction_count,
            self.account.address,
        )
        gas_price = await self._call("eth_gasPrice", lambda: self.w3.eth.gas_price)
        signed = self.account.sign_transaction(
            {
                "to": Web3.to_checksum_address(to),
                "data": data,
                "value": 0,
                "gas": gas_limit or self.config.mint_gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": self.chain_id,
            }
        )
        return Web3.to_hex(signed.raw_transaction)

    async def balance_of(self, address: str) -> int:
        return await self._call(
            "balanceOf",
            self.contract.functions.balanceOf(Web3.to_checksum_address(address)).call,
        )

    async def burn_from(self, user: str, amount: int, timeout: float = 120.0) -> str:
        """Send ``burnFrom(user, amount)`` and wait for it to be mined."""
        return await self._call("burnFrom", self._burn_from_sync, user, amount, timeout)

    def _burn_from_sync(self, user: str, amount: int, timeout: float) -> str:
        tx = self.contract.functions.burnFrom(
            Web3.to_checksum_address(user), amount
        ).build_transaction(
            {
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address),
                "chainId": self.chain_id,
            }
        )
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(
            f"Sent burn transaction {Web3.to_hex(tx_hash)}", context=self._context
        )

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        if receipt["status"] != 1:
            raise ChainRPCError(
                f"Burn transaction {Web3.to_hex(tx_hash)} reverted",
                network=self.network.value,
                retryable=False,
            )
        return Web3.to_hex(tx_hash)


@dataclass
class ChainBinding:
    """Configuration and client of one network, resolved once at startup."""

    config: NetworkConfig
    client: Any

    @property
    def network(self) -> Network:
        return self.config.network

    @property
    def contract_address(self) -> str:
        return self.config.contract_address

    @property
    def chain_id(self) -> int:
        return self.config.chain_id


def build_bindings(networks, private_key: str):
    """Create one :class:`EvmChainClient` per configured network."""
    return {
        network: ChainBinding(config=config, client=EvmChainClient(config, private_key))
        for network, config in networks.items()
    }
