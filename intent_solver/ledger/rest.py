"""Ledger client for an Aptos-style REST node.

Reads go through `POST {rpc_url}/view`. Writes are entry-function payloads
handed to a Signer, which owns the account key and submits the signed
transaction. Move aborts come back as rejections; transport problems raise
SubmissionFailure so the caller retries on the next poll.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from intent_solver.auction.dutch import DutchCurve
from intent_solver.errors import LedgerError, PreconditionFailure, SubmissionFailure
from intent_solver.ledger.base import Signer
from intent_solver.ledger.parsing import classify_abort, parse_dutch_params, parse_intent_record
from intent_solver.ledger.result import RejectionReason, SubmitResult
from intent_solver.models.intent import Intent, IntentType
from intent_solver.models.solution import AcceptRequest, BidRequest, FillRequest

logger = structlog.get_logger()

# Entry functions per intent type; scheduled fills carry no input amount
_FILL_FUNCTIONS = {
    IntentType.SWAP: "settlement::fill_swap",
    IntentType.LIMIT_ORDER: "settlement::fill_limit_order",
    IntentType.TWAP: "settlement::fill_twap_chunk",
    IntentType.DCA: "settlement::fill_dca_period",
}


class RestLedgerClient:
    """LedgerClient over the node REST API.

    Args:
        rpc_url: Node REST root (e.g. https://testnet.movementnetwork.xyz/v1)
        velox_address: Settlement contract address
        signer: Submits signed transactions; reads work without one
        fee_config_address: Fee config object (default: the contract address)
        client: Shared async HTTP client (created if not given)
    """

    def __init__(
        self,
        rpc_url: str,
        velox_address: str,
        signer: Signer | None = None,
        fee_config_address: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self.velox_address = velox_address
        self.signer = signer
        self.fee_config_address = fee_config_address or velox_address
        self._client = client or httpx.AsyncClient(timeout=30.0)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Reads ---

    async def view(self, function: str, arguments: list[Any]) -> list[Any]:
        """Call a view function on the settlement contract.

        Raises:
            LedgerError: On transport failure or a non-2xx response
        """
        body = {
            "function": f"{self.velox_address}::{function}",
            "type_arguments": [],
            "arguments": [str(a) for a in arguments],
        }
        try:
            response = await self._client.post(f"{self.rpc_url}/view", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            raise LedgerError(
                f"View {function} failed ({err.response.status_code}): {err.response.text}"
            ) from err
        except httpx.HTTPError as err:
            raise LedgerError(f"View {function} failed: {err}") from err
        result = response.json()
        if not isinstance(result, list):
            raise LedgerError(f"View {function} returned {type(result).__name__}, expected list")
        return result

    async def get_total_intents(self) -> int:
        result = await self.view("submission::get_total_intents", [self.velox_address])
        return int(result[0] or 0) if result else 0

    async def get_intent(self, intent_id: int) -> Intent | None:
        """Current intent snapshot, or None if the ledger has no such intent."""
        try:
            result = await self.view("submission::get_intent", [self.velox_address, intent_id])
        except LedgerError as err:
            if "EINTENT_NOT_FOUND" in str(err) or "(404)" in str(err):
                logger.debug("intent_not_found", intent_id=intent_id)
                return None
            raise
        if not result or not result[0]:
            return None
        return parse_intent_record(result[0])

    async def get_dutch_auction(self, intent_id: int) -> DutchCurve | None:
        try:
            result = await self.view("auction::get_dutch_auction", [self.velox_address, intent_id])
        except LedgerError as err:
            if "EAUCTION_NOT_DUTCH" in str(err):
                return None
            raise
        if not result or not isinstance(result[0], dict):
            return None
        return parse_dutch_params(result[0])

    async def get_sequence_number(self, address: str) -> int:
        try:
            response = await self._client.get(f"{self.rpc_url}/accounts/{address}")
            response.raise_for_status()
        except httpx.HTTPError as err:
            raise LedgerError(f"Account lookup for {address} failed: {err}") from err
        return int(response.json()["sequence_number"])

    # --- Writes ---

    async def submit_fill(self, request: FillRequest) -> SubmitResult:
        function = _FILL_FUNCTIONS[request.intent_type]
        if request.intent_type in (IntentType.TWAP, IntentType.DCA):
            args = [request.intent_id, request.output_amount]
        else:
            args = [request.intent_id, request.amount, request.output_amount]
        payload = self._payload(function, [self.velox_address, self.fee_config_address, *args])
        return await self._submit(payload, request.nonce, intent_id=request.intent_id)

    async def submit_bid(self, request: BidRequest) -> SubmitResult:
        payload = self._payload(
            "auction::submit_bid",
            [self.velox_address, request.intent_id, request.output_amount],
        )
        return await self._submit(payload, request.nonce, intent_id=request.intent_id)

    async def accept_dutch(self, request: AcceptRequest) -> SubmitResult:
        payload = self._payload("auction::accept_dutch", [self.velox_address, request.intent_id])
        return await self._submit(payload, request.nonce, intent_id=request.intent_id)

    def _payload(self, function: str, arguments: list[Any]) -> dict[str, Any]:
        return {
            "type": "entry_function_payload",
            "function": f"{self.velox_address}::{function}",
            "type_arguments": [],
            "arguments": [str(a) for a in arguments],
        }

    async def _submit(self, payload: dict[str, Any], nonce: int, intent_id: int) -> SubmitResult:
        if self.signer is None:
            raise PreconditionFailure("No signer configured; cannot submit transactions")
        try:
            tx_hash = await self.signer.sign_and_submit(payload, nonce)
        except SubmissionFailure as err:
            if err.reason is None:
                raise
            logger.info(
                "submission_rejected",
                intent_id=intent_id,
                function=payload["function"],
                reason=err.reason,
            )
            return SubmitResult.rejected(RejectionReason(err.reason), detail=str(err))
        return SubmitResult.ok(tx_hash)


class RemoteSigner:
    """Signer that forwards payloads to an external signing service.

    The service receives {"sender", "sequence_number", "payload"} on
    `POST {url}/submit`, waits for the transaction, and answers with
    {"hash", "success", "vm_status"}.

    Args:
        url: Signing service root
        address: Account the service signs for
        client: Shared async HTTP client (created if not given)
    """

    def __init__(self, url: str, address: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url.rstrip("/")
        self.address = address
        self._client = client or httpx.AsyncClient(timeout=60.0)

    async def sign_and_submit(self, payload: dict[str, Any], nonce: int) -> str:
        try:
            response = await self._client.post(
                f"{self.url}/submit",
                json={"sender": self.address, "sequence_number": str(nonce), "payload": payload},
            )
        except httpx.HTTPError as err:
            raise SubmissionFailure(f"Signer unreachable: {err}") from err

        if response.status_code >= 500:
            raise SubmissionFailure(f"Signer error {response.status_code}: {response.text}")

        try:
            body = response.json() if response.content else {}
        except ValueError as err:
            message = f"Signer returned {response.status_code}: {response.text}"
            raise SubmissionFailure(message, reason=classify_abort(response.text).value) from err
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("success", False):
            message = str(body.get("vm_status") or body.get("message") or response.text)
            raise SubmissionFailure(message, reason=classify_abort(message).value)

        tx_hash = body.get("hash")
        if not tx_hash:
            raise SubmissionFailure("Signer reported success without a transaction hash")
        return str(tx_hash)
