"""Centralized Fibonacci constants for level derivation."""

from decimal import Decimal

# Retracement ratios, measured from the 0% anchor toward the 100% anchor.
RETRACEMENT_RATIOS = (
    Decimal("0.236"),
    Decimal("0.382"),
    Decimal("0.5"),
    Decimal("0.618"),
    Decimal("0.786"),
)

# Extension ratios, projected beyond the 0% anchor.
EXTENSION_RATIOS = (
    Decimal("1.272"),
    Decimal("1.414"),
    Decimal("1.618"),
    Decimal("2.0"),
    Decimal("2.272"),
    Decimal("2.414"),
    Decimal("2.618"),
    Decimal("3.0"),
    Decimal("3.618"),
)

# Named retracement bands (inclusive ratio bounds).
GOLDEN_ZONE = (Decimal("0.618"), Decimal("0.786"))
GOLDEN_POCKET = (Decimal("0.618"), Decimal("0.65"))

# Wave labels in count order. The count wraps to "1" after "C".
WAVE_LABELS = ("1", "2", "3", "4", "5", "A", "B", "C")

DEFAULT_WAVE_LABEL_CAP = 20
