"""
Tests for the facilitator HTTP service and FacilitatorClient.
"""

import json
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import FACILITATOR_PRIVATE_KEY, make_payload
from x402_exact.config import FacilitatorSettings
from x402_exact.facilitator import (
    FacilitatorClient,
    InMemoryReplayLedger,
    PercentageCashbackPolicy,
    RedisReplayLedger,
    StaticCashbackPolicy,
    X402Facilitator,
)
from x402_exact.facilitator.app import build_facilitator, create_app
from x402_exact.facilitator.cashback import CashbackEngine
from x402_exact.mechanisms.evm.exact import ExactEvmFacilitatorMechanism

TX_HASH = "0x" + "aa" * 32


def _body(payload, requirements):
    return {
        "paymentPayload": payload.model_dump(by_alias=True, exclude_none=True),
        "paymentRequirements": requirements.model_dump(by_alias=True, exclude_none=True),
    }


@pytest.fixture
def facilitator(mock_signer):
    mechanism = ExactEvmFacilitatorMechanism(mock_signer)
    engine = CashbackEngine(mock_signer, PercentageCashbackPolicy(2))
    return X402Facilitator(cashback=engine).register(["base-sepolia"], mechanism)


@pytest.fixture
def http(facilitator):
    return TestClient(create_app(facilitator=facilitator))


class TestRoutes:
    def test_root(self, http):
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == "x402 facilitator running"

    def test_supported(self, http):
        response = http.get("/supported")
        assert response.status_code == 200
        assert response.json() == {
            "kinds": [{"x402Version": 1, "scheme": "exact", "network": "base-sepolia"}]
        }

    def test_verify(self, http, usdc_requirements):
        payload = make_payload(usdc_requirements)
        response = http.post("/verify", json=_body(payload, usdc_requirements))
        assert response.status_code == 200
        assert response.json() == {
            "isValid": True,
            "payer": payload.payload.authorization.from_address,
        }

    def test_verify_reports_reason(self, http, usdc_requirements):
        payload = make_payload(usdc_requirements, value="1")
        response = http.post("/verify", json=_body(payload, usdc_requirements))
        assert response.status_code == 200
        assert response.json()["invalidReason"] == "amount_mismatch"

    def test_verify_does_not_reserve(self, http, usdc_requirements):
        body = _body(make_payload(usdc_requirements), usdc_requirements)
        http.post("/verify", json=body)
        assert http.post("/verify", json=body).json()["isValid"] is True

    def test_verify_malformed(self, http):
        response = http.post("/verify", json={"paymentPayload": {}})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request"}

    def test_settle(self, http, mock_signer, usdc_requirements):
        cashback_tx = "0x" + "bb" * 32
        mock_signer.write_contract.side_effect = [TX_HASH, cashback_tx]
        body = _body(make_payload(usdc_requirements), usdc_requirements)

        response = http.post("/settle", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["settlement"]["status"] == "settled"
        assert data["settlement"]["transaction"] == TX_HASH
        assert data["cashback"]["txHash"] == cashback_tx
        assert data["cashback"]["amount"] == "200"

        replay = http.post("/settle", json=body).json()
        assert replay["success"] is False
        assert replay["settlement"]["errorReason"] == "nonce_already_used"

    def test_settle_failed_cashback_keeps_null_tx_hash(self, http, mock_signer, usdc_requirements):
        mock_signer.write_contract.side_effect = [TX_HASH, ValueError("nonce too low")]

        response = http.post("/settle", json=_body(make_payload(usdc_requirements), usdc_requirements))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["settlement"]["status"] == "settled"
        assert "txHash" in data["cashback"]
        assert data["cashback"]["txHash"] is None
        assert data["cashback"]["percent"] == "2"
        assert data["cashback"]["errorReason"] == "nonce too low"
        assert "errorReason" not in data["settlement"]

    def test_settle_malformed(self, http):
        response = http.post(
            "/settle", content=b"not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert "error" in response.json()


class TestBuildFacilitator:
    def _settings(self, **overrides):
        values = {"evm_private_key": FACILITATOR_PRIVATE_KEY, "networks": ["base-sepolia", "base"]}
        values.update(overrides)
        return FacilitatorSettings(**values)

    def test_defaults(self):
        facilitator = build_facilitator(self._settings())
        networks = sorted(k.network for k in facilitator.supported().kinds)
        assert networks == ["base", "base-sepolia"]
        mechanism = facilitator._find_mechanism("base", "exact")
        assert isinstance(mechanism.replay_ledger, InMemoryReplayLedger)
        assert isinstance(facilitator._cashback._policy, PercentageCashbackPolicy)

    def test_redis_and_static_cashback(self):
        facilitator = build_facilitator(
            self._settings(redis_url="redis://localhost:6379/0", cashback_static_amount=Decimal("1"))
        )
        mechanism = facilitator._find_mechanism("base-sepolia", "exact")
        assert isinstance(mechanism.replay_ledger, RedisReplayLedger)
        assert isinstance(facilitator._cashback._policy, StaticCashbackPolicy)


class TestFacilitatorClient:
    @pytest.mark.anyio
    async def test_verify_and_settle(self, usdc_requirements):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, request.headers.get("authorization")))
            if request.url.path == "/verify":
                body = json.loads(request.content)
                assert body["paymentRequirements"]["maxAmountRequired"] == "10000"
                assert body["paymentPayload"]["payload"]["authorization"]["from"]
                return httpx.Response(200, json={"isValid": False, "invalidReason": "amount_mismatch"})
            if request.url.path == "/settle":
                return httpx.Response(
                    200,
                    json={
                        "success": True,
                        "settlement": {"success": True, "status": "settled", "transaction": TX_HASH},
                        "cashback": {"beneficiary": "0xabc", "amount": "200", "txHash": None},
                    },
                )
            return httpx.Response(
                200, json={"kinds": [{"x402Version": 1, "scheme": "exact", "network": "base"}]}
            )

        client = FacilitatorClient(
            "http://facilitator.test/",
            headers={"Authorization": "Bearer token"},
            transport=httpx.MockTransport(handler),
        )
        payload = make_payload(usdc_requirements)

        verdict = await client.verify(payload, usdc_requirements)
        settled = await client.settle(payload, usdc_requirements)
        supported = await client.supported()
        await client.close()

        assert verdict.invalid_reason == "amount_mismatch"
        assert settled.success
        assert settled.settlement.transaction == TX_HASH
        assert settled.cashback.tx_hash is None
        assert supported.kinds[0].network == "base"
        assert seen == [
            ("POST", "/verify", "Bearer token"),
            ("POST", "/settle", "Bearer token"),
            ("GET", "/supported", "Bearer token"),
        ]

    @pytest.mark.anyio
    async def test_http_error_raises(self, usdc_requirements):
        client = FacilitatorClient(
            "http://facilitator.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "x"})),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await client.verify(make_payload(usdc_requirements), usdc_requirements)
        await client.close()
