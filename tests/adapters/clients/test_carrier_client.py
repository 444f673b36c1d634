"""Tests for CarrierRateClient response parsing."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch
import urllib.error

import pytest

from checkout_engine.errors import CarrierClientError
from checkout_engine.infra.clients.carrier import (
    CarrierHTTPError,
    CarrierRateClient,
    RateOption,
    RateRequest,
)


def create_request() -> RateRequest:
    return RateRequest(
        delivery_pincode="560001",
        weight=0.5,
        length=10.0,
        breadth=8.0,
        height=2.0,
    )


class TestCarrierRateClient:
    """Tests for CarrierRateClient.fetch_rates."""

    def test_parses_flat_data_list(self) -> None:
        # setup
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch.object(client, "_post") as mock_post:
            mock_post.return_value = {
                "data": [
                    {
                        "courier_name": "Ekart",
                        "rate": {"amount": 79.5},
                        "etd": "4 days",
                    },
                    {"name": "Bluedart Air", "rate": 140},
                ]
            }

            # act
            options = client.fetch_rates(create_request(), fallback_label="Standard")

            # assert
            assert options == [
                RateOption(label="Ekart", fee=80, eta="4 days"),
                RateOption(label="Bluedart Air", fee=140, eta=None),
            ]
            payload = mock_post.call_args.args[0]
            assert payload["delivery_pincode"] == "560001"
            assert "delivery_postcode" not in payload
            assert payload["weight"] == 0.5

    def test_parses_available_courier_companies(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch.object(client, "_post") as mock_post:
            mock_post.return_value = {
                "data": {
                    "available_courier_companies": [
                        {"courier_name": "Delhivery", "freight_charge": 95.0},
                    ]
                }
            }

            options = client.fetch_rates(create_request())

            assert options == [RateOption(label="Delhivery", fee=95, eta=None)]

    def test_drops_options_without_usable_fee(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch.object(client, "_post") as mock_post:
            mock_post.return_value = {
                "data": [
                    {"courier_name": "NoPrice"},
                    {"courier_name": "Negative", "rate": -5},
                    {"rate": 60},
                ]
            }

            options = client.fetch_rates(create_request(), fallback_label="Express")

            assert options == [RateOption(label="Express", fee=60, eta=None)]

    def test_missing_data_returns_no_options(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch.object(client, "_post") as mock_post:
            mock_post.return_value = {"status": "ok"}

            assert client.fetch_rates(create_request()) == []

    def test_wrong_shape_raises_client_error(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch.object(client, "_post") as mock_post:
            mock_post.return_value = {"data": "unavailable"}

            with pytest.raises(CarrierClientError):
                client.fetch_rates(create_request())

    def test_http_error_raises_carrier_http_error(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")
        http_error = urllib.error.HTTPError(
            "https://rates.example.test/quote",
            503,
            "Service Unavailable",
            hdrs=MagicMock(),
            fp=io.BytesIO(b"busy"),
        )

        with patch("urllib.request.urlopen", side_effect=http_error):
            with pytest.raises(CarrierHTTPError) as exc_info:
                client.fetch_rates(create_request())

        assert exc_info.value.status == 503

    def test_network_error_raises_client_error(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with patch(
            "urllib.request.urlopen",
            side_effect=urllib.error.URLError("connection refused"),
        ):
            with pytest.raises(CarrierClientError):
                client.fetch_rates(create_request())

    def test_non_json_body_raises_client_error(self) -> None:
        client = CarrierRateClient(endpoint="https://rates.example.test/quote")

        with pytest.raises(CarrierClientError):
            client._parse_json_response("<html>bad gateway</html>")

    def test_blank_endpoint_is_rejected(self) -> None:
        with pytest.raises(CarrierClientError):
            CarrierRateClient(endpoint="   ")
