"""
Vehicle valuation client (CheckCarDetails vehiclevaluation datapoint).

Returns private / retail / trade / part-exchange figures for a (plate, mileage) pair.
"""

import logging
from typing import Any

from platecheck.clients.base import ProviderClient, ProviderError
from platecheck.schemas.vehicle import ValuationPayload
from platecheck.utils.parsing import as_dict, clean_text, extract_number, first_present

logger = logging.getLogger(__name__)


class ValuationClient(ProviderClient):
    provider_name = "valuation"

    async def get_valuation(self, plate: str, mileage: int) -> ValuationPayload:
        """Value a vehicle at the given mileage."""
        if isinstance(mileage, bool) or not isinstance(mileage, int) or mileage <= 0:
            raise ProviderError(
                f"Invalid mileage: must be a positive integer, got {mileage!r}",
                code=ProviderError.INVALID_MILEAGE,
                provider=self.provider_name,
            )
        plate = self._check_request(plate)

        data = await self.request_datapoint("vehiclevaluation", plate, mileage=mileage)
        payload = self.parse_body("vehiclevaluation", parse_valuation, data, plate=plate, mileage=mileage)
        logger.info(
            f"Valuation for {plate} at {mileage} miles: private={payload.private_price} "
            f"retail={payload.retail_price} trade={payload.trade_price}"
        )
        return payload


def _price(value: Any) -> int | None:
    number = extract_number(value)
    if number is None or number <= 0:
        return None
    return int(round(number))


def parse_valuation(data: dict[str, Any], plate: str | None = None, mileage: int | None = None) -> ValuationPayload:
    """
    Parse a vehiclevaluation body.

    Accepts the ValuationList shape (PrivateClean, DealerForecourt, TradeAverage,
    PartExchange) and the flat estimatedValue shape (private, retail, trade).
    """
    valuation_list = as_dict(data.get("ValuationList"))
    estimated = as_dict(data.get("estimatedValue"))

    private = _price(first_present(valuation_list.get("PrivateClean"), estimated.get("private"), data.get("privatePrice")))
    retail = _price(first_present(valuation_list.get("DealerForecourt"), estimated.get("retail"), data.get("dealerPrice")))
    trade = _price(first_present(valuation_list.get("TradeAverage"), estimated.get("trade"), data.get("tradePrice")))
    part_exchange = _price(first_present(valuation_list.get("PartExchange"), data.get("partExchangePrice"))) or trade

    if private is None and retail is None and trade is None:
        raise ProviderError(
            "Valuation response contained no prices",
            code=ProviderError.MALFORMED_RESPONSE,
            provider=ValuationClient.provider_name,
        )

    response_mileage = extract_number(first_present(data.get("Mileage"), data.get("mileage")))

    return ValuationPayload(
        plate=clean_text(first_present(data.get("Vrm"), data.get("vrm"))) or plate,
        mileage=int(response_mileage) if response_mileage else mileage,
        private_price=private,
        retail_price=retail,
        trade_price=trade,
        part_exchange_price=part_exchange,
        confidence=clean_text(data.get("confidence")) or "medium",
        vehicle_description=clean_text(first_present(data.get("VehicleDescription"), data.get("vehicleDescription"))),
    )
