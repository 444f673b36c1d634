"""Carrier rate lookup client.

Talks to a rate proxy endpoint that mirrors the courier serviceability
response shape: either ``{"data": [option, ...]}`` or
``{"data": {"available_courier_companies": [option, ...]}}``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Self, cast
import urllib.error
import urllib.request

from pydantic import BaseModel, ConfigDict, ValidationError

from checkout_engine.errors import CarrierClientError
from checkout_engine.money import round_half_up


class CarrierHTTPError(CarrierClientError):
    """Endpoint answered with a non-success status."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Carrier rate endpoint error ({status}): {body}")
        self.status = status


@dataclass(frozen=True, slots=True)
class RateRequest:
    delivery_pincode: str
    weight: float
    length: float
    breadth: float
    height: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "delivery_pincode": self.delivery_pincode,
            "weight": self.weight,
            "length": self.length,
            "breadth": self.breadth,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class RateOption:
    label: str
    fee: int
    eta: str | None


class CarrierBaseModel(BaseModel):
    """Shared base for carrier response models with a short parse alias."""

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def parse(cls, data: Any) -> Self:
        return cls.model_validate(data)


class RateAmount(CarrierBaseModel):
    amount: float | None = None


class CourierOptionModel(CarrierBaseModel):
    courier_name: str | None = None
    name: str | None = None
    service: str | None = None
    rate: RateAmount | float | None = None
    freight_charge: float | None = None
    courier_charge: float | None = None
    delivery_charges: float | None = None
    etd: str | None = None
    eta: str | None = None

    def fee(self) -> float | None:
        if isinstance(self.rate, RateAmount) and self.rate.amount is not None:
            return self.rate.amount
        if isinstance(self.rate, int | float):
            return float(self.rate)
        for candidate in (
            self.freight_charge,
            self.courier_charge,
            self.delivery_charges,
        ):
            if candidate is not None:
                return candidate
        return None

    def to_option(self, fallback_label: str) -> RateOption | None:
        fee = self.fee()
        if fee is None or fee < 0:
            return None
        label = self.courier_name or self.name or self.service or fallback_label
        return RateOption(
            label=label, fee=round_half_up(fee), eta=self.etd or self.eta
        )


class CourierCompanies(CarrierBaseModel):
    available_courier_companies: list[CourierOptionModel] = []


class RateResponse(CarrierBaseModel):
    data: list[CourierOptionModel] | CourierCompanies | None = None

    def options(self, fallback_label: str) -> list[RateOption]:
        if self.data is None:
            return []
        if isinstance(self.data, CourierCompanies):
            raw = self.data.available_courier_companies
        else:
            raw = self.data
        parsed = (model.to_option(fallback_label) for model in raw)
        return [option for option in parsed if option is not None]


class CarrierRateClient:
    """Blocking client for the carrier rate endpoint.

    The estimator runs ``fetch_rates`` in a worker thread and applies its own
    deadline on top of the socket timeout.
    """

    def __init__(self, *, endpoint: str, timeout_seconds: float = 4.0) -> None:
        if not endpoint.strip():
            raise CarrierClientError("Carrier rate endpoint must not be empty")
        self._endpoint = endpoint
        self._timeout_seconds = timeout_seconds

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _parse_json_response(self, body: str) -> dict[str, Any]:
        try:
            loaded = json.loads(body)
        except json.JSONDecodeError as e:
            raise CarrierClientError(
                f"Failed to parse carrier response as JSON: {e}"
            ) from e
        if not isinstance(loaded, dict):
            raise CarrierClientError("Carrier response must be a JSON object")
        return cast(dict[str, Any], loaded)

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(  # noqa: S310
            self._endpoint,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(  # noqa: S310 - configured rate endpoint
                req, timeout=self._timeout_seconds
            ) as resp:
                body = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            err_body = e.read().decode("utf-8", "ignore")
            raise CarrierHTTPError(e.code, err_body) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise CarrierClientError(
                f"Network error calling carrier endpoint: {e}"
            ) from e

        return self._parse_json_response(body)

    def fetch_rates(
        self, request: RateRequest, *, fallback_label: str = ""
    ) -> list[RateOption]:
        """Fetch candidate shipping options for a package.

        Args:
            request: Destination and package aggregate
            fallback_label: Label used for options that carry no name

        Returns:
            Options with a usable fee, in the order the carrier returned them

        Raises:
            CarrierClientError: On transport, status or response-shape errors
        """
        raw = self._post(request.to_payload())
        try:
            response = RateResponse.parse(raw)
        except ValidationError as e:
            raise CarrierClientError(
                f"Unexpected carrier response shape: {e}"
            ) from e
        return response.options(fallback_label)
