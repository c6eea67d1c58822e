import unittest
from datetime import date

from cartera_core.engine import evaluate
from cartera_core.models import AssetType, Currency, RawPosition, SortMode


def _pos(pid, ticker, asset_type, qty, price, currency, d="2024-01-01", fav=False, name=""):
    return RawPosition(
        id=pid,
        ticker=ticker,
        asset_type=asset_type,
        quantity=qty,
        cost_basis_price=price,
        cost_currency=currency,
        purchase_date=date.fromisoformat(d),
        is_favorite=fav,
        name=name,
    )


def _portfolio():
    return [
        _pos("1", "BTC", AssetType.CRYPTO, 0.5, 20000.0, Currency.USD, d="2024-02-01", name="Bitcoin"),
        _pos("2", "GGAL", AssetType.STOCK, 10, 100.0, Currency.ARS, d="2024-01-05", name="Grupo Galicia"),
        _pos("3", "ggal", AssetType.STOCK, 5, 130.0, Currency.ARS, d="2024-03-10"),
        _pos("4", "AAPL", AssetType.DEPOSITARY_RECEIPT, 4, 10.0, Currency.USD, d="2023-12-01", fav=True, name="Apple"),
        _pos("5", "ETH", AssetType.CRYPTO, 2, 1500.0, Currency.USD, d="2024-04-01"),
    ]


PRICES = {
    "Cripto-BTC": 25000.0,
    "Acción-GGAL": 150.0,
    "CEDEAR-AAPL": 12000.0,
    "Cripto-ETH": 2000.0,
}


class TestEvaluate(unittest.TestCase):
    def test_allocation_sums_to_100(self):
        for merge in (True, False):
            for ars in (True, False):
                result = evaluate(_portfolio(), PRICES, 1000.0, display_in_ars=ars, merge=merge)
                total = sum(r.allocation_percent for r in result.rows)
                self.assertAlmostEqual(total, 100.0, places=6)

    def test_merge_preserves_current_value(self):
        merged = evaluate(_portfolio(), PRICES, 1000.0, merge=True)
        split = evaluate(_portfolio(), PRICES, 1000.0, merge=False)
        self.assertEqual(merged.count, 4)
        self.assertEqual(split.count, 5)
        self.assertAlmostEqual(
            sum(r.current_value for r in merged.rows),
            sum(r.current_value for r in split.rows),
        )
        self.assertAlmostEqual(merged.summary.total_current_value, split.summary.total_current_value)

    def test_merged_row_uses_pooled_cost(self):
        result = evaluate(_portfolio(), PRICES, 1000.0, display_in_ars=True, merge=True)
        ggal = next(r for r in result.rows if r.position.ticker == "GGAL")
        self.assertAlmostEqual(ggal.unit_cost_basis, 110.0)
        self.assertEqual(ggal.position.quantity, 15)
        self.assertAlmostEqual(ggal.change_absolute, (150.0 - 110.0) * 15)

    def test_summary_totals_in_ars(self):
        result = evaluate(_portfolio(), PRICES, 1000.0, display_in_ars=True, merge=True)
        s = result.summary
        invested = 0.5 * 20000 * 1000 + 15 * 110.0 + 4 * 10.0 * 1000 + 2 * 1500 * 1000
        current = 0.5 * 25000 * 1000 + 15 * 150.0 + 4 * 12000.0 + 2 * 2000 * 1000
        self.assertEqual(s.currency, Currency.ARS)
        self.assertAlmostEqual(s.total_invested, invested)
        self.assertAlmostEqual(s.total_current_value, current)
        self.assertAlmostEqual(s.total_change_absolute, current - invested)
        self.assertAlmostEqual(s.total_change_percent, (current - invested) / invested * 100.0)

    def test_pending_row_counts_as_invested_only(self):
        prices = dict(PRICES)
        del prices["CEDEAR-AAPL"]
        result = evaluate(_portfolio(), prices, 1000.0, display_in_ars=True, merge=True)
        aapl = next(r for r in result.rows if r.position.ticker == "AAPL")
        self.assertTrue(aapl.pending)
        self.assertIsNone(aapl.allocation_percent)
        self.assertEqual(result.summary.pending_count, 1)
        current = 0.5 * 25000 * 1000 + 15 * 150.0 + 2 * 2000 * 1000
        self.assertAlmostEqual(result.summary.total_current_value, current)
        self.assertAlmostEqual(
            result.summary.total_invested,
            0.5 * 20000 * 1000 + 15 * 110.0 + 4 * 10.0 * 1000 + 2 * 1500 * 1000,
        )
        priced = [r.allocation_percent for r in result.rows if not r.pending]
        self.assertAlmostEqual(sum(priced), 100.0, places=6)

    def test_missing_rate_leaves_values_unconverted(self):
        result = evaluate(_portfolio(), PRICES, None, display_in_ars=True, merge=False)
        btc = next(r for r in result.rows if r.position.ticker == "BTC")
        self.assertEqual(btc.unit_market_price, 25000.0)
        self.assertEqual(btc.unit_cost_basis, 20000.0)
        self.assertIsNone(result.rate)

    def test_empty_portfolio(self):
        result = evaluate([], PRICES, 1000.0)
        self.assertEqual(result.count, 0)
        self.assertEqual(result.summary.total_invested, 0.0)
        self.assertEqual(result.summary.total_change_percent, 0.0)

    def test_idempotent_and_inputs_untouched(self):
        prices = dict(PRICES)
        first = evaluate(_portfolio(), prices, 1000.0, sort_mode=SortMode.GAIN_PERCENT_DESC)
        second = evaluate(_portfolio(), prices, 1000.0, sort_mode=SortMode.GAIN_PERCENT_DESC)
        self.assertEqual(first, second)
        self.assertEqual(prices, PRICES)

    def test_favorites_first_for_every_mode(self):
        records = _portfolio() + [_pos("6", "ZZZ", AssetType.STOCK, 1, 1.0, Currency.ARS, fav=True)]
        prices = dict(PRICES, **{"Acción-ZZZ": 1.0})
        for mode in SortMode:
            for merge in (True, False):
                rows = evaluate(records, prices, 1000.0, merge=merge, sort_mode=mode).rows
                flags = [r.position.is_favorite for r in rows]
                self.assertEqual(flags, sorted(flags, reverse=True), msg=mode)

    def test_sort_modes(self):
        def tickers(mode, merge=True):
            return [r.position.ticker for r in evaluate(_portfolio(), PRICES, 1000.0, merge=merge, sort_mode=mode).rows]

        # AAPL is a favorite and always leads.
        self.assertEqual(tickers(SortMode.TICKER_ASC), ["AAPL", "BTC", "ETH", "GGAL"])
        self.assertEqual(tickers(SortMode.TICKER_DESC), ["AAPL", "GGAL", "ETH", "BTC"])
        self.assertEqual(tickers(SortMode.HOLDING_VALUE_DESC), ["AAPL", "BTC", "ETH", "GGAL"])
        self.assertEqual(tickers(SortMode.GAIN_PERCENT_ASC), ["AAPL", "BTC", "ETH", "GGAL"])
        self.assertEqual(tickers(SortMode.DATE_ASC, merge=False), ["AAPL", "GGAL", "BTC", "ggal", "ETH"])
        self.assertEqual(tickers(SortMode.DATE_DESC, merge=False), ["AAPL", "ETH", "ggal", "BTC", "GGAL"])

    def test_sort_ties_keep_input_order(self):
        records = [
            _pos("1", "AAA", AssetType.STOCK, 1, 1.0, Currency.ARS),
            _pos("2", "BBB", AssetType.STOCK, 1, 1.0, Currency.ARS),
            _pos("3", "CCC", AssetType.STOCK, 1, 1.0, Currency.ARS),
        ]
        for mode in (SortMode.GAIN_ABSOLUTE_ASC, SortMode.GAIN_ABSOLUTE_DESC, SortMode.DATE_DESC):
            rows = evaluate(records, {}, 1000.0, merge=False, sort_mode=mode).rows
            self.assertEqual([r.position.id for r in rows], ["1", "2", "3"])

    def test_sort_mode_from_string(self):
        result = evaluate(_portfolio(), PRICES, 1000.0, sort_mode="holdingvalueasc")
        self.assertEqual(result.sort_mode, SortMode.HOLDING_VALUE_ASC)
        with self.assertRaises(ValueError):
            evaluate(_portfolio(), PRICES, 1000.0, sort_mode="bogus")

    def test_type_filter_and_search(self):
        crypto = evaluate(_portfolio(), PRICES, 1000.0, type_filter="cripto")
        self.assertEqual({r.position.ticker for r in crypto.rows}, {"BTC", "ETH"})
        self.assertAlmostEqual(sum(r.allocation_percent for r in crypto.rows), 100.0, places=6)

        by_name = evaluate(_portfolio(), PRICES, 1000.0, search="galicia")
        self.assertEqual([r.position.ticker for r in by_name.rows], ["GGAL"])
        # Pooled cost still comes from every GGAL purchase.
        self.assertAlmostEqual(by_name.rows[0].unit_cost_basis, 110.0)

        everything = evaluate(_portfolio(), PRICES, 1000.0, type_filter="Todos")
        self.assertEqual(everything.count, 4)
        with self.assertRaises(ValueError):
            evaluate(_portfolio(), PRICES, 1000.0, type_filter="Bono")

    def test_price_keys_match_regardless_of_accents(self):
        prices = {"Accion-ggal": 150.0}
        result = evaluate([_pos("2", "GGAL", AssetType.STOCK, 10, 100.0, Currency.ARS)], prices, 1000.0)
        self.assertFalse(result.rows[0].pending)

    def test_to_dict(self):
        data = evaluate(_portfolio(), PRICES, 1000.0).to_dict()
        self.assertEqual(data["count"], 4)
        self.assertEqual(data["summary"]["currency"], "ARS")
        self.assertIn("allocation_percent", data["rows"][0])


if __name__ == "__main__":
    unittest.main()
