#!/usr/bin/env python3
"""Translation and categorization tests"""

import unittest

from econ_calendar.taxonomy import (
    CATEGORIES,
    categorize,
    matches_categories,
    primary_category,
    translate,
)


class TestTranslate(unittest.TestCase):

    def test_longest_match_wins(self):
        translated = translate("Core Consumer Price Index")
        self.assertEqual(translated, "Subyacente Índice de Precios al Consumidor")
        self.assertNotIn("Consumer", translated)
        self.assertNotIn("Price", translated)

    def test_whole_words_only(self):
        self.assertEqual(translate("ICPIX"), "ICPIX")
        self.assertEqual(translate("CPI (YoY)"), "IPC (Anual)")

    def test_case_insensitive(self):
        self.assertEqual(translate("retail sales"), "Ventas Minoristas")

    def test_multi_word_term_before_its_parts(self):
        self.assertEqual(translate("BoJ Interest Rate Decision"), "BdJ Decisión de Tipos de Interés")

    def test_slash_abbreviations(self):
        self.assertEqual(translate("GDP w/o Oil"), "PIB s/ Oil")

    def test_unknown_words_untouched(self):
        self.assertEqual(translate("Ifo Business Climate"), "Ifo Empresarial Climate")
        self.assertEqual(translate(""), "")


class TestCategorize(unittest.TestCase):

    def test_multiple_categories(self):
        categories = categorize("Wage Price Index")
        self.assertIn("employment", categories)
        self.assertIn("inflation", categories)

    def test_primary_is_first_match_in_table_order(self):
        self.assertEqual(primary_category("Wage Price Index"), "employment")
        self.assertEqual(primary_category("Nonfarm Payrolls"), "employment")
        self.assertEqual(primary_category("Manufacturing PMI"), "manufacturing")
        self.assertEqual(primary_category("Crude Oil Inventories"), "energy")

    def test_trailing_keyword_at_end_of_name(self):
        self.assertIn("monetary", categorize("Fed Chair Powell Speaks"))
        self.assertIn("monetary", categorize("Fed"))

    def test_spanish_keywords(self):
        self.assertIn("employment", categorize("Tasa de Desempleo"))
        self.assertIn("gdp", categorize("PIB (Trimestral)"))

    def test_no_match(self):
        self.assertEqual(categorize("Bank Holiday"), [])
        self.assertIsNone(primary_category("Bank Holiday"))
        self.assertEqual(categorize(""), [])

    def test_matches_categories(self):
        self.assertTrue(matches_categories("Core CPI (YoY)", ["Inflation"]))
        self.assertFalse(matches_categories("Core CPI (YoY)", ["energy", "trade"]))

    def test_category_names(self):
        self.assertEqual(len(CATEGORIES), 9)


if __name__ == '__main__':
    unittest.main()
