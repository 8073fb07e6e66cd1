"""Client-side ``exact`` EVM scheme: signs ERC-3009 transfer authorizations."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from x402.interfaces import SchemeNetworkClientV1
from x402.schemas.v1 import PaymentRequirementsV1

from .codec import encode_payment_header
from .constants import EXACT_SCHEME, X402_VERSION, UnsupportedNetworkError, chain_id_from_network

logger = logging.getLogger(__name__)

# validAfter is backdated to tolerate clock skew between payer and facilitator
VALID_AFTER_SKEW_SECONDS = 600


def _parse_amount(amount: str) -> int:
    text = amount.strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text, 10)


def _transfer_typed_data(
    *,
    token_name: str,
    token_version: str,
    chain_id: int,
    verifying_contract: str,
    message: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "TransferWithAuthorization": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "validAfter", "type": "uint256"},
                {"name": "validBefore", "type": "uint256"},
                {"name": "nonce", "type": "bytes32"},
            ],
        },
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": token_name,
            "version": token_version,
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "message": message,
    }


class ExactEvmClientScheme(SchemeNetworkClientV1):
    """Builds ``X-PAYMENT`` proofs for ``exact`` requirements on EVM networks."""

    scheme = EXACT_SCHEME

    def __init__(
        self,
        private_key: str,
        asset: Optional[str] = None,
        token_name: Optional[str] = None,
        token_version: Optional[str] = None,
        network: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._account = Account.from_key(private_key)
        self._asset = asset
        self._token_name = token_name
        self._token_version = token_version
        self._network = network
        self._clock = clock

    @property
    def address(self) -> str:
        return self._account.address

    def supports(self, requirements: PaymentRequirementsV1) -> bool:
        if requirements.scheme != self.scheme:
            return False
        try:
            chain_id_from_network(str(requirements.network))
        except UnsupportedNetworkError:
            return False
        if self._network and str(requirements.network) != self._network:
            return False
        if self._asset and requirements.asset.lower() != self._asset.lower():
            return False
        return True

    def _token_domain(self, requirements: PaymentRequirementsV1) -> tuple[str, str]:
        extra = requirements.extra or {}
        name = self._token_name or extra.get("name")
        version = self._token_version or extra.get("version")
        if not name or not version:
            raise ValueError(
                f"No EIP-712 token name/version available for asset {requirements.asset}"
            )
        return str(name), str(version)

    def create_payment_payload(self, requirements: PaymentRequirementsV1) -> dict[str, Any]:
        chain_id = chain_id_from_network(str(requirements.network))
        token_name, token_version = self._token_domain(requirements)
        now = int(self._clock())
        valid_after = now - VALID_AFTER_SKEW_SECONDS
        valid_before = now + int(requirements.max_timeout_seconds)
        nonce = "0x" + secrets.token_hex(32)
        value = _parse_amount(requirements.max_amount_required)

        typed_data = _transfer_typed_data(
            token_name=token_name,
            token_version=token_version,
            chain_id=chain_id,
            verifying_contract=requirements.asset,
            message={
                "from": self._account.address,
                "to": requirements.pay_to,
                "value": value,
                "validAfter": valid_after,
                "validBefore": valid_before,
                "nonce": nonce,
            },
        )
        signable = encode_typed_data(full_message=typed_data)
        signed = self._account.sign_message(signable)
        logger.debug(
            "signed transfer authorization from=%s to=%s value=%s",
            self._account.address,
            requirements.pay_to,
            value,
        )
        return {
            "signature": "0x" + bytes(signed.signature).hex(),
            "authorization": {
                "from": self._account.address,
                "to": requirements.pay_to,
                "value": str(value),
                "validAfter": str(valid_after),
                "validBefore": str(valid_before),
                "nonce": nonce,
            },
        }

    def create_payment_header(self, requirements: PaymentRequirementsV1) -> str:
        envelope = {
            "x402Version": X402_VERSION,
            "scheme": self.scheme,
            "network": str(requirements.network),
            "payload": self.create_payment_payload(requirements),
        }
        return encode_payment_header(envelope)

