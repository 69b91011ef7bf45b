import unittest
from datetime import datetime
from decimal import Decimal

from register.receipt import ReceiptLine, render_receipt

LINES = [
    ReceiptLine(qty=2, name="Bier 0,5", line_total=Decimal("5.00")),
    ReceiptLine(qty=1, name="Cola 0,33", line_total=Decimal("3.00")),
]

EXPECTED = (
    "*** HAUPTBAR ***\n"
    "Bon-Nr: FK-000042\n"
    "04.07.2026, 18:30:05\n"
    "Kassier: Anna (staff)\n"
    "Zahlung: Bar\n"
    "-----------------------------\n"
    "2x Bier 0,5  € 5,00\n"
    "1x Cola 0,33  € 3,00\n"
    "-----------------------------\n"
    "BRUTTO  € 8,00\n"
    "USt 20% € 1,33\n"
    "NETTO   € 6,67\n"
)


def _render(**overrides):
    kwargs = dict(
        bar_name="Hauptbar",
        receipt_no="FK-000042",
        created_at=datetime(2026, 7, 4, 18, 30, 5),
        payment_method="cash",
        cashier_label="Anna (staff)",
        lines=LINES,
        gross=Decimal("8.00"),
        tax=Decimal("1.33"),
        net=Decimal("6.67"),
    )
    kwargs.update(overrides)
    return render_receipt(**kwargs)


class ReceiptRenderTestCase(unittest.TestCase):
    def test_layout(self):
        self.assertEqual(_render(), EXPECTED)

    def test_rendering_is_stable(self):
        self.assertEqual(_render(), _render())

    def test_card_and_no_cashier(self):
        text = _render(payment_method="card", cashier_label=None)
        self.assertIn("Zahlung: Karte\n", text)
        self.assertIn("Kassier: —\n", text)

    def test_voided_marker(self):
        text = _render(status="voided")
        self.assertIn("*** STORNIERT ***\n", text)
        # lines and totals are unchanged
        self.assertTrue(text.endswith(EXPECTED.split("Zahlung: Bar\n")[1]))
        self.assertNotIn("STORNIERT", _render(status="completed"))


if __name__ == "__main__":
    unittest.main()
