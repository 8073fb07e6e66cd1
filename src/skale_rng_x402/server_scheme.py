"""Server-side ``exact`` EVM scheme: prices a route and issues its requirement."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from x402.interfaces import SchemeNetworkServer
from x402.schemas import AssetAmount, Network, Price
from x402.schemas.v1 import PaymentRequirementsV1

from .constants import EXACT_SCHEME, JSON_MEDIA_TYPE, chain_id_from_network


class ExactEvmServerScheme(SchemeNetworkServer):
    """Prices routes in a single ERC-3009 token on an EVM network.

    ``PAYMENT_AMOUNT`` style prices are either atomic token units (``"10000"``)
    or money strings (``"$0.01"``) converted with the token's decimals.
    """

    scheme = EXACT_SCHEME

    def __init__(
        self,
        asset: str,
        token_name: str,
        token_version: str,
        decimals: int = 6,
    ) -> None:
        self._asset = asset
        self._token_name = token_name
        self._token_version = token_version
        self._decimals = decimals

    def parse_price(self, price: Price, network: Network) -> AssetAmount:
        chain_id_from_network(str(network))
        if isinstance(price, int) or (isinstance(price, str) and price.strip().isdigit()):
            # already in atomic token units
            return AssetAmount(amount=str(int(price)), asset=self._asset, extra=self._domain())

        amount = self._parse_money_to_decimal(price)
        return AssetAmount(
            amount=self._convert_to_token_amount(amount),
            asset=self._asset,
            extra=self._domain(),
        )

    def enhance_payment_requirements(
        self,
        requirements: Any,
        supported_kind=None,
        extensions: list[str] | None = None,
    ) -> Any:
        del supported_kind, extensions
        extra = dict(requirements.extra or {})
        for key, value in self._domain().items():
            extra.setdefault(key, value)
        requirements.extra = extra
        return requirements

    def build_requirements(
        self,
        price: Price,
        network: Network,
        pay_to: str,
        resource: str,
        description: str,
        max_timeout_seconds: int,
        mime_type: str = JSON_MEDIA_TYPE,
    ) -> PaymentRequirementsV1:
        asset_amount = self.parse_price(price, network)
        requirements = PaymentRequirementsV1(
            scheme=self.scheme,
            network=network,
            max_amount_required=asset_amount.amount,
            resource=resource,
            description=description,
            mime_type=mime_type,
            pay_to=pay_to,
            max_timeout_seconds=max_timeout_seconds,
            asset=asset_amount.asset,
            output_schema=None,
            extra=dict(asset_amount.extra or {}),
        )
        return self.enhance_payment_requirements(requirements)

    def _domain(self) -> dict[str, str]:
        return {"name": self._token_name, "version": self._token_version}

    def _parse_money_to_decimal(self, money: str | float | int) -> Decimal:
        if isinstance(money, (int, float)):
            return Decimal(str(money))
        if isinstance(money, str):
            clean = money.replace("$", "").strip()
            try:
                return Decimal(clean)
            except InvalidOperation as exc:
                raise ValueError(f"Invalid money format: {money}") from exc
        raise ValueError(f"Invalid money type: {type(money)}")

    def _convert_to_token_amount(self, amount: Decimal) -> str:
        if amount < 0:
            raise ValueError("Amount must be non-negative")
        int_part, _, dec_part = f"{amount:f}".partition(".")
        padded_dec = (dec_part + "0" * self._decimals)[: self._decimals]
        return (int_part + padded_dec).lstrip("0") or "0"
