"""Solana implementation of the ledger gateway.

Transfers are built and signed locally, so the transaction signature is
known before submission. Confirmation is polled explicitly; when the caller's
deadline expires first the transfer is reported as unknown, never as failed.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal

import base58
import httpx
from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from nuke_league.config import settings
from nuke_league.ledger.base import (
    FeeClaimResult,
    LedgerConfigError,
    LedgerGateway,
    TransferFailed,
    TransferOutcomeUnknown,
    TransferReceipt,
    TransferStatus,
    from_base_units,
    to_base_units,
)

_CONFIRMED_LEVELS = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


def load_keypair(secret: str | None) -> Keypair:
    """Decode a base58 or JSON byte-array secret key."""
    if not secret:
        raise LedgerConfigError("DEV_PK not configured")
    secret = secret.strip()
    try:
        if secret.startswith("[") and secret.endswith("]"):
            return Keypair.from_bytes(bytes(json.loads(secret)))
        return Keypair.from_bytes(base58.b58decode(secret))
    except Exception as e:
        raise LedgerConfigError(f"Failed to load payout keypair: {e}") from e


def _never_sent(e: SolanaRpcException) -> bool:
    """True when the RPC call failed before any bytes reached the node."""
    return isinstance(e.__cause__, (httpx.ConnectError, httpx.ConnectTimeout))


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise TransferFailed(f"Invalid destination address {address!r}: {e}") from e


class SolanaLedgerGateway(LedgerGateway):
    """Payout wallet on Solana, driven over JSON-RPC."""

    def __init__(
        self,
        rpc_endpoint: str | None = None,
        secret_key: str | None = None,
        *,
        poll_interval: float = 1.0,
        confirm_timeout: float | None = None,
        http_timeout: float | None = None,
        fee_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._keypair = load_keypair(secret_key if secret_key is not None else settings.DEV_PK)
        self._client = AsyncClient(rpc_endpoint or settings.SOLANA_RPC_ENDPOINT, commitment=Confirmed)
        self._poll_interval = poll_interval
        self._confirm_timeout = confirm_timeout or settings.TRANSFER_CONFIRM_TIMEOUT_SECONDS
        self._http_timeout = http_timeout or settings.HTTP_TIMEOUT_SECONDS
        self._fee_transport = fee_transport

    @property
    def pool_address(self) -> Pubkey:
        return self._keypair.pubkey()

    async def close(self) -> None:
        await self._client.close()

    async def get_pool_balance(self) -> Decimal:
        resp = await self._client.get_balance(self.pool_address)
        return from_base_units(resp.value)

    async def transfer(self, destination: str, amount: Decimal) -> TransferReceipt:
        lamports = to_base_units(amount)
        if lamports <= 0:
            raise TransferFailed(f"Amount {amount} SOL rounds down to zero lamports")
        to_pubkey = parse_pubkey(destination)

        try:
            blockhash_resp = await self._client.get_latest_blockhash()
        except SolanaRpcException as e:
            raise TransferFailed(f"Could not fetch a recent blockhash: {e.__cause__!r}") from e
        blockhash = blockhash_resp.value.blockhash
        last_valid_height = blockhash_resp.value.last_valid_block_height

        ix = transfer(TransferParams(
            from_pubkey=self.pool_address,
            to_pubkey=to_pubkey,
            lamports=lamports,
        ))
        tx = Transaction([self._keypair], Message([ix], self.pool_address), blockhash)
        signature = tx.signatures[0]

        logger.info("Submitting transfer of {} lamports to {} ({})", lamports, destination, signature)
        await self._submit(bytes(tx), signature)
        try:
            await self._await_confirmation(signature, last_valid_height)
        except (TransferFailed, TransferOutcomeUnknown):
            raise
        except Exception as e:
            raise TransferOutcomeUnknown(
                f"Confirmation of {signature} not observed: {e!r}", signature=str(signature)
            ) from e
        return TransferReceipt(
            signature=str(signature),
            url=settings.EXPLORER_TX_URL.format(signature=signature),
        )

    async def _submit(self, raw_tx: bytes, signature: Signature) -> None:
        try:
            await self._client.send_raw_transaction(
                raw_tx, opts=TxOpts(skip_confirmation=True, preflight_commitment=Confirmed)
            )
        except RPCException as e:
            # Preflight rejection: the cluster refused the transaction.
            raise TransferFailed(f"Transaction rejected: {e}") from e
        except SolanaRpcException as e:
            # solana-py wraps every httpx error; the cause tells whether the node saw it.
            if _never_sent(e):
                raise TransferFailed(f"RPC unreachable: {e.__cause__!r}") from e
            raise TransferOutcomeUnknown(
                f"Submission of {signature} interrupted: {e.__cause__!r}", signature=str(signature)
            ) from e

    async def _await_confirmation(self, signature: Signature, last_valid_height: int) -> None:
        deadline = asyncio.get_running_loop().time() + self._confirm_timeout
        while True:
            if asyncio.get_running_loop().time() >= deadline:
                raise TransferOutcomeUnknown(
                    f"Confirmation of {signature} not observed within {self._confirm_timeout}s",
                    signature=str(signature),
                )
            try:
                resp = await self._client.get_signature_statuses([signature])
                status = resp.value[0]
                if status is not None:
                    if status.err is not None:
                        raise TransferFailed(f"Transaction {signature} failed on-chain: {status.err}")
                    if status.confirmation_status in _CONFIRMED_LEVELS:
                        return
                else:
                    height = (await self._client.get_block_height()).value
                    if height > last_valid_height:
                        raise TransferFailed(f"Transaction {signature} expired before landing")
            except SolanaRpcException as e:
                logger.warning("Status poll for {} failed: {!r}", signature, e.__cause__)
            await asyncio.sleep(self._poll_interval)

    async def get_transfer_status(self, signature: str) -> TransferStatus:
        resp = await self._client.get_signature_statuses(
            [Signature.from_string(signature)], search_transaction_history=True
        )
        status = resp.value[0]
        if status is None:
            return TransferStatus.NOT_FOUND
        if status.err is not None:
            return TransferStatus.FAILED
        if status.confirmation_status in _CONFIRMED_LEVELS:
            return TransferStatus.CONFIRMED
        return TransferStatus.NOT_FOUND

    async def find_transfer(self, destination: str, lamports: int, since: datetime) -> str | None:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        cutoff = int(since.timestamp())

        resp = await self._client.get_signatures_for_address(self.pool_address, limit=100)
        for entry in resp.value:
            if entry.err is not None:
                continue
            if entry.block_time is not None and entry.block_time < cutoff:
                break
            tx_resp = await self._client.get_transaction(
                entry.signature, encoding="jsonParsed", max_supported_transaction_version=0
            )
            if _matches_transfer(json.loads(tx_resp.to_json()), str(self.pool_address), destination, lamports):
                return str(entry.signature)
        return None

    async def get_token_balance(self, owner: str, mint: str) -> int:
        try:
            owner_key = Pubkey.from_string(owner)
            mint_key = Pubkey.from_string(mint)
        except ValueError as e:
            raise LedgerConfigError(f"Invalid address: {e}") from e

        resp = await self._client.get_token_accounts_by_owner_json_parsed(
            owner_key, TokenAccountOpts(mint=mint_key)
        )
        total = 0
        for account in resp.value:
            parsed = account.account.data.parsed
            if parsed and "info" in parsed:
                total += int(parsed["info"]["tokenAmount"]["amount"])
        return total

    async def claim_creator_fees(self, priority_fee: Decimal) -> FeeClaimResult:
        payload = {
            "publicKey": str(self.pool_address),
            "action": "collectCreatorFee",
            "priorityFee": float(priority_fee),
            "pool": "pump",
        }
        try:
            async with httpx.AsyncClient(timeout=self._http_timeout, transport=self._fee_transport) as http:
                resp = await http.post(settings.PUMPPORTAL_API_URL, json=payload)
        except httpx.HTTPError as e:
            return FeeClaimResult(success=False, error=f"PumpPortal request failed: {e!r}")
        if resp.status_code != 200:
            return FeeClaimResult(success=False, error=f"HTTP {resp.status_code}: {resp.text[:200]}")

        unsigned = VersionedTransaction.from_bytes(resp.content)
        signed = VersionedTransaction(unsigned.message, [self._keypair])
        try:
            sent = await self._client.send_raw_transaction(
                bytes(signed), opts=TxOpts(preflight_commitment=Confirmed)
            )
        except RPCException as e:
            return FeeClaimResult(success=False, error=str(e))
        except SolanaRpcException as e:
            return FeeClaimResult(success=False, error=repr(e.__cause__))
        return FeeClaimResult(success=True, signature=str(sent.value))


def _matches_transfer(tx: dict, source: str, destination: str, lamports: int) -> bool:
    result = tx.get("result") or {}
    meta = result.get("meta") or {}
    if meta.get("err") is not None:
        return False
    message = ((result.get("transaction") or {}).get("message")) or {}
    for ix in message.get("instructions", []):
        parsed = ix.get("parsed")
        if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
            continue
        info = parsed.get("info") or {}
        if (
            info.get("source") == source
            and info.get("destination") == destination
            and int(info.get("lamports", -1)) == lamports
        ):
            return True
    return False
