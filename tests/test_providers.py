"""Tests for the CoinMarketCap and Moralis adapters.

HTTP sessions are mocked; no network access is needed.

**Feature: cryptofolio**
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests
from hypothesis import given, settings
from hypothesis import strategies as st

from cryptofolio.errors import ExternalServiceError, NotFoundError, ValidationError
from cryptofolio.providers.coinmarketcap import (
    SENTIMENT_THRESHOLD,
    CoinMarketCapClient,
    classify_market_sentiment,
)
from cryptofolio.providers.moralis import (
    MoralisClient,
    scale_raw_amount,
    validate_address,
)


SOL_ADDRESS = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
ETH_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def mock_response(payload, status_code: int = 200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = payload
    return response


def mock_session(*payloads, status_code: int = 200):
    session = MagicMock()
    session.get.side_effect = [mock_response(p, status_code) for p in payloads]
    return session


def cmc_coin(coin_id: int, symbol: str, name: str, price: float) -> dict:
    return {
        "id": coin_id,
        "name": name,
        "symbol": symbol,
        "slug": name.lower(),
        "quote": {
            "USD": {
                "price": price,
                "volume_24h": 1000.0,
                "market_cap": 5000.0,
                "percent_change_24h": -1.25,
                "last_updated": "2024-03-01T12:00:00.000Z",
            }
        },
    }


OK_STATUS = {"error_code": 0, "error_message": None}


class TestCoinMarketCapLookups:
    def test_symbol_lookup_returns_every_candidate(self):
        session = mock_session({
            "status": OK_STATUS,
            "data": {
                "UNI": [
                    cmc_coin(7083, "UNI", "Uniswap", 7.5),
                    cmc_coin(9999, "UNI", "Universe", 0.01),
                ]
            },
        })
        client = CoinMarketCapClient("key", session=session)

        quotes = client.lookup_by_symbol(" uni ")

        assert [(q.id, q.name) for q in quotes] == [(7083, "Uniswap"), (9999, "Universe")]
        assert quotes[0].price == 7.5
        assert quotes[0].percent_change_24h == -1.25
        assert quotes[0].last_updated.year == 2024

        url = session.get.call_args.args[0]
        kwargs = session.get.call_args.kwargs
        assert url == "https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest"
        assert kwargs["params"] == {"symbol": "UNI", "convert": "USD"}
        assert kwargs["headers"]["X-CMC_PRO_API_KEY"] == "key"
        assert kwargs["timeout"] == 30.0

    def test_unknown_symbol_is_empty(self):
        session = mock_session({"status": OK_STATUS, "data": {"NOPE": []}})
        assert CoinMarketCapClient("key", session=session).lookup_by_symbol("nope") == []

    def test_lookup_by_id(self):
        session = mock_session(
            {"status": OK_STATUS, "data": {"1": cmc_coin(1, "BTC", "Bitcoin", 65000.0)}}
        )
        quote = CoinMarketCapClient("key", session=session).lookup_by_id(1)

        assert quote.symbol == "BTC"
        assert quote.price == 65000.0
        assert session.get.call_args.kwargs["params"]["id"] == "1"

    def test_lookup_by_id_not_found(self):
        session = mock_session({"status": OK_STATUS, "data": {}})
        with pytest.raises(NotFoundError):
            CoinMarketCapClient("key", session=session).lookup_by_id(123456)

    def test_lookup_many(self):
        session = mock_session({
            "status": OK_STATUS,
            "data": {
                "1": cmc_coin(1, "BTC", "Bitcoin", 1.0),
                "1027": cmc_coin(1027, "ETH", "Ethereum", 2.0),
            },
        })
        client = CoinMarketCapClient("key", session=session)

        quotes = client.lookup_many([1, 1027])

        assert {q.symbol for q in quotes} == {"BTC", "ETH"}
        assert session.get.call_args.kwargs["params"]["id"] == "1,1027"
        assert client.lookup_many([]) == []

    def test_missing_price_is_an_error(self):
        coin = cmc_coin(1, "BTC", "Bitcoin", 1.0)
        coin["quote"]["USD"]["price"] = None
        session = mock_session({"status": OK_STATUS, "data": {"1": coin}})
        with pytest.raises(ExternalServiceError, match="no USD price"):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)

    def test_symbol_lookup_skips_unpriced_listings(self):
        inactive = cmc_coin(9999, "UNI", "Universe", 0.0)
        inactive["quote"] = {}
        session = mock_session({
            "status": OK_STATUS,
            "data": {"UNI": [cmc_coin(7083, "UNI", "Uniswap", 7.5), inactive]},
        })

        quotes = CoinMarketCapClient("key", session=session).lookup_by_symbol("UNI")

        assert [q.id for q in quotes] == [7083]

    def test_malformed_coin_payload(self):
        session = mock_session({"status": OK_STATUS, "data": {"1": {"id": 1}}})
        with pytest.raises(ExternalServiceError):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)


class TestCoinMarketCapErrors:
    def test_provider_message_is_surfaced(self):
        session = mock_session(
            {"status": {"error_code": 1002, "error_message": "API key missing."}},
            status_code=401,
        )
        with pytest.raises(ExternalServiceError) as exc:
            CoinMarketCapClient("bad", session=session).lookup_by_symbol("BTC")

        assert exc.value.provider == "coinmarketcap"
        assert exc.value.provider_message == "API key missing."
        assert exc.value.status_code == 401
        assert "API key missing." in str(exc.value)

    def test_rate_limit(self):
        session = mock_session({}, status_code=429)
        with pytest.raises(ExternalServiceError, match="rate limit"):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)

    def test_error_code_in_ok_response(self):
        session = mock_session(
            {"status": {"error_code": 400, "error_message": "Invalid value for \"id\""}}
        )
        with pytest.raises(ExternalServiceError, match="Invalid value"):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)

    def test_transport_error(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("unreachable")
        with pytest.raises(ExternalServiceError, match="request failed"):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)

    def test_non_json_body(self):
        response = mock_response(None)
        response.json.side_effect = ValueError("no json")
        session = MagicMock()
        session.get.return_value = response
        with pytest.raises(ExternalServiceError, match="not valid JSON"):
            CoinMarketCapClient("key", session=session).lookup_by_id(1)


class TestGlobalMetrics:
    def test_snapshot_from_payload(self):
        session = mock_session({
            "status": OK_STATUS,
            "data": {
                "btc_dominance": 52.3,
                "quote": {
                    "USD": {
                        "total_market_cap": 2.4e12,
                        "total_volume_24h": 9.1e10,
                        "total_market_cap_yesterday_percentage_change": 3.1,
                    }
                },
            },
        })
        snapshot = CoinMarketCapClient("key", session=session).global_metrics()

        assert snapshot.total_market_cap == 2.4e12
        assert snapshot.btc_dominance == 52.3
        assert snapshot.market_sentiment == "BULLISH"
        assert snapshot.market_cap_change_24h == 3.1

    def test_missing_fields(self):
        session = mock_session({"status": OK_STATUS, "data": {"quote": {"USD": {}}}})
        with pytest.raises(ExternalServiceError):
            CoinMarketCapClient("key", session=session).global_metrics()

    @given(change=st.floats(min_value=-50, max_value=50, allow_nan=False))
    @settings(max_examples=100)
    def test_sentiment_classification(self, change: float):
        """
        *For any* 24h change, the label is bullish above the threshold,
        bearish below its negative, neutral in between.
        """
        label = classify_market_sentiment(change)
        if change >= SENTIMENT_THRESHOLD:
            assert label == "BULLISH"
        elif change <= -SENTIMENT_THRESHOLD:
            assert label == "BEARISH"
        else:
            assert label == "NEUTRAL"

    def test_unknown_change_is_neutral(self):
        assert classify_market_sentiment(None) == "NEUTRAL"


class TestAddressValidation:
    def test_valid_addresses(self):
        assert validate_address("solana", SOL_ADDRESS).native_symbol == "SOL"
        assert validate_address("Ethereum", ETH_ADDRESS).native_symbol == "ETH"

    @pytest.mark.parametrize(
        "chain,address",
        [
            ("solana", "not-an-address"),
            ("solana", "0OIl" * 10),
            ("ethereum", "0x1234"),
            ("ethereum", SOL_ADDRESS),
        ],
    )
    def test_invalid_addresses(self, chain, address):
        with pytest.raises(ValidationError) as exc:
            validate_address(chain, address)
        assert exc.value.field == "address"

    def test_unsupported_chain(self):
        with pytest.raises(ValidationError) as exc:
            validate_address("dogechain", SOL_ADDRESS)
        assert exc.value.field == "chain"


class TestMoralisBalances:
    @given(
        raw=st.integers(min_value=0, max_value=10**24),
        decimals=st.integers(min_value=0, max_value=18),
    )
    @settings(max_examples=100)
    def test_scaling_is_exact(self, raw: int, decimals: int):
        """
        *For any* raw integer balance, scaling back up by 10^decimals
        recovers it exactly.
        """
        assert scale_raw_amount(raw, decimals) * (Decimal(10) ** decimals) == raw

    def test_solana_native_balance(self):
        session = mock_session({"lamports": "1500000000", "solana": "1.5"})
        client = MoralisClient("key", session=session)

        assert client.native_balance("solana", SOL_ADDRESS) == Decimal("1.5")
        url = session.get.call_args.args[0]
        assert url == f"https://solana-gateway.moralis.io/account/mainnet/{SOL_ADDRESS}/balance"
        assert session.get.call_args.kwargs["headers"]["X-API-Key"] == "key"

    def test_solana_tokens(self):
        session = mock_session([
            {
                "mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                "symbol": "USDC",
                "name": "USD Coin",
                "amountRaw": "2500000",
                "decimals": 6,
            }
        ])
        [token] = MoralisClient("key", session=session).token_balances("solana", SOL_ADDRESS)

        assert token.symbol == "USDC"
        assert token.raw_amount == 2_500_000
        assert token.amount == Decimal("2.5")

    def test_solana_portfolio(self):
        session = mock_session({
            "nativeBalance": {"lamports": "2000000000", "solana": "2"},
            "tokens": [
                {"mint": "mint1", "symbol": "BONK", "amountRaw": "100000", "decimals": 5}
            ],
        })
        portfolio = MoralisClient("key", session=session).portfolio("solana", SOL_ADDRESS)

        assert portfolio.native_symbol == "SOL"
        assert portfolio.native_balance == Decimal(2)
        assert portfolio.tokens[0].amount == Decimal(1)

    def test_ethereum_balance_uses_evm_api(self):
        session = mock_session({"balance": "250000000000000000"})
        client = MoralisClient("key", session=session)

        assert client.native_balance("ethereum", ETH_ADDRESS) == Decimal("0.25")
        url = session.get.call_args.args[0]
        assert url == f"https://deep-index.moralis.io/api/v2.2/{ETH_ADDRESS}/balance"
        assert session.get.call_args.kwargs["params"] == {"chain": "eth"}

    def test_ethereum_portfolio(self):
        session = mock_session(
            {"balance": "1000000000000000000"},
            [
                {
                    "token_address": "0xabc",
                    "symbol": "LINK",
                    "balance": "3000000000000000000",
                    "decimals": 18,
                }
            ],
        )
        portfolio = MoralisClient("key", session=session).portfolio("ethereum", ETH_ADDRESS)

        assert portfolio.native_balance == Decimal(1)
        assert portfolio.tokens[0].amount == Decimal(3)

    def test_invalid_address_makes_no_request(self):
        session = MagicMock()
        with pytest.raises(ValidationError):
            MoralisClient("key", session=session).native_balance("solana", "bogus")
        session.get.assert_not_called()

    def test_garbage_balance(self):
        session = mock_session({"lamports": "lots"})
        with pytest.raises(ExternalServiceError):
            MoralisClient("key", session=session).native_balance("solana", SOL_ADDRESS)

    @pytest.mark.parametrize(
        "item",
        [
            {"mint": None, "amountRaw": "1", "decimals": 6},
            {"mint": "mint1", "amountRaw": "1", "decimals": "six"},
            {"mint": "mint1", "amountRaw": "-5", "decimals": 6},
            {"amountRaw": "1", "decimals": 6},
            "mint1",
        ],
    )
    def test_malformed_token_item(self, item):
        session = mock_session([item])
        with pytest.raises(ExternalServiceError):
            MoralisClient("key", session=session).token_balances("solana", SOL_ADDRESS)

    def test_provider_error(self):
        session = mock_session({"message": "Invalid address"}, status_code=400)
        with pytest.raises(ExternalServiceError) as exc:
            MoralisClient("key", session=session).native_balance("solana", SOL_ADDRESS)
        assert exc.value.provider == "moralis"
        assert exc.value.provider_message == "Invalid address"
