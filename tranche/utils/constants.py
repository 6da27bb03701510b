"""Shared constants and strategy presets."""

SIDE_BUY = "BUY"
SIDE_SELL = "SELL"
VALID_SIDES = [SIDE_BUY, SIDE_SELL]

# Order style is informational only; it never changes a calculation.
ORDER_LOC = "LOC"
ORDER_LIMIT = "LIMIT"
ORDER_MOC = "MOC"
VALID_ORDER_STYLES = [ORDER_LOC, ORDER_LIMIT, ORDER_MOC]

VARIANT_V3 = "v3.0"
VARIANT_V2 = "v2.2"
VALID_VARIANTS = [VARIANT_V3, VARIANT_V2]

# Per-variant defaults: tranche count, sell target % (regular / high-volatility), compounding %
VARIANT_PRESETS: dict[str, dict[str, float]] = {
    VARIANT_V3: {"tranches": 20, "sell_target_pct": 15.0, "sell_target_pct_volatile": 20.0, "compound_pct": 50.0},
    VARIANT_V2: {"tranches": 40, "sell_target_pct": 10.0, "sell_target_pct_volatile": 12.0, "compound_pct": 0.0},
}

# Symbols that get the higher sell target in every variant
HIGH_VOLATILITY_SYMBOLS = {"SOXL"}

SUPPORTED_SYMBOLS = [
    "TQQQ", "SOXL", "TECL", "FNGU", "UPRO",
    "WEBL", "BULZ", "WANT", "DFEN", "HIBL",
    "TNA", "UDOW", "LABU", "NAIL", "RETL",
    "DPST", "DUSL", "MIDU", "FAS", "CURE",
]

# RSI advisory buckets: upper bound -> bucket value
RSI_BUCKETS: list[tuple[float, float]] = [(30.0, 30.0), (50.0, 50.0)]
RSI_BUCKET_MAX = 70.0

BACKUP_FORMAT_VERSION = "1.0"
BACKUP_APP_NAME = "TrancheTracker"


def preset_for(symbol: str, variant: str) -> dict[str, float]:
    """Return the default tranche count, sell target and compounding for a symbol."""
    preset = VARIANT_PRESETS.get(variant, VARIANT_PRESETS[VARIANT_V3])
    volatile = symbol.strip().upper() in HIGH_VOLATILITY_SYMBOLS
    return {
        "tranches": int(preset["tranches"]),
        "sell_target_pct": preset["sell_target_pct_volatile"] if volatile else preset["sell_target_pct"],
        "compound_pct": preset["compound_pct"],
    }
