# PATH: core/units.py
"""
Base-unit rendering for Sentinel.

On-ledger amounts are integers in base units. This module renders them
for logs and reports without going through float.
"""

from decimal import Decimal, localcontext


def format_units(amount: int, decimals: int = 6) -> str:
    """
    Render an integer amount of base units as a decimal string.

    Exact for any uint256 amount; no rounding happens because the
    result always carries exactly `decimals` fractional digits.

    Example:
        >>> format_units(1_500_000, 6)
        '1.500000'
        >>> format_units(12345, 0)
        '12345'
    """
    with localcontext() as ctx:
        ctx.prec = 90  # uint256 fits
        value = Decimal(int(amount)).scaleb(-decimals)
        return f"{value:.{decimals}f}"
