import unittest

from cartera_core.fx import convert, native_currency, usable_rate
from cartera_core.keys import asset_key, cost_key, index_price_table, market_key, parse_asset_type, strip_diacritics
from cartera_core.models import AssetType, Currency


class TestConvert(unittest.TestCase):
    def test_usd_ars_directions(self):
        self.assertEqual(convert(2.0, Currency.USD, Currency.ARS, 1000.0), 2000.0)
        self.assertEqual(convert(1500.0, Currency.ARS, Currency.USD, 1000.0), 1.5)

    def test_identity_cases(self):
        self.assertEqual(convert(7.0, Currency.ARS, Currency.ARS, 1000.0), 7.0)
        self.assertEqual(convert(0.0, Currency.USD, Currency.ARS, 1000.0), 0.0)
        self.assertEqual(convert(7.0, Currency.USD, Currency.ARS, None), 7.0)
        self.assertEqual(convert(7.0, Currency.ARS, Currency.USD, 0), 7.0)
        self.assertEqual(convert(7.0, Currency.ARS, Currency.USD, float("nan")), 7.0)

    def test_round_trip(self):
        for v, r in ((123.45, 1037.5), (0.0001, 1.1), (5e6, 1234.56)):
            back = convert(convert(v, Currency.USD, Currency.ARS, r), Currency.ARS, Currency.USD, r)
            self.assertAlmostEqual(back, v, places=9)

    def test_usable_rate(self):
        self.assertIsNone(usable_rate(None))
        self.assertIsNone(usable_rate(-5))
        self.assertEqual(usable_rate("1200.5"), 1200.5)

    def test_native_currency_covers_all_types(self):
        self.assertEqual(native_currency(AssetType.CRYPTO), Currency.USD)
        self.assertEqual(native_currency(AssetType.STOCK), Currency.ARS)
        self.assertEqual(native_currency(AssetType.DEPOSITARY_RECEIPT), Currency.ARS)


class TestKeys(unittest.TestCase):
    def test_strip_diacritics(self):
        self.assertEqual(strip_diacritics("Acción"), "Accion")
        self.assertEqual(strip_diacritics(""), "")

    def test_type_labels_collapse(self):
        for label in ("Acción", "accion", "ACCION", "Accion", " acción "):
            self.assertEqual(parse_asset_type(label), AssetType.STOCK, label)
        self.assertEqual(parse_asset_type("cedear"), AssetType.DEPOSITARY_RECEIPT)
        self.assertEqual(parse_asset_type("Cripto"), AssetType.CRYPTO)
        self.assertIsNone(parse_asset_type("Bono"))
        self.assertIsNone(parse_asset_type(None))

    def test_market_and_cost_keys(self):
        self.assertEqual(market_key(AssetType.STOCK, "ggal"), "Acción-GGAL")
        self.assertEqual(cost_key(AssetType.STOCK, "ggal"), "GGAL-Accion")
        self.assertEqual(cost_key(AssetType.CRYPTO, "btc"), "BTC-Cripto")
        self.assertEqual(asset_key(AssetType.CRYPTO, " btc "), asset_key(AssetType.CRYPTO, "BTC"))

    def test_index_price_table(self):
        table = {
            "Accion-ggal": 100.0,
            "CEDEAR-BRK-B": 25.0,
            "Bono-AL30": 5.0,
            "CEDEAR-AAPL": float("nan"),
            "Cripto-ETH": None,
            "nokey": 1.0,
        }
        out = index_price_table(table)
        self.assertEqual(
            out,
            {
                asset_key(AssetType.STOCK, "GGAL"): 100.0,
                asset_key(AssetType.DEPOSITARY_RECEIPT, "BRK-B"): 25.0,
            },
        )

    def test_zero_price_is_kept(self):
        out = index_price_table({"Cripto-DOGE": 0})
        self.assertEqual(out[asset_key(AssetType.CRYPTO, "DOGE")], 0.0)


if __name__ == "__main__":
    unittest.main()
