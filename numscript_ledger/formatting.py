"""
formatting.py - Human-readable rendering of integer amounts

format_amount() turns an amount in an asset's smallest unit into display
text, using the precision carried in the asset identifier:

    format_amount(10000, "USD/2")        -> "$100.00"
    format_amount(5450000, "BRL/2")      -> "R$54500.00"
    format_amount(10000000000, "USDT/6") -> "USDT 10000.000000"
    format_amount(100, "COIN")           -> "100 COIN"
"""

from __future__ import annotations

from .parser import parse_asset


# Display prefix per asset code. Codes not listed use "<code> ".
CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'BRL': 'R$',
    'USDT': 'USDT ',
    'USDC': 'USDC ',
}


def currency_symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_amount(amount: int, asset: str) -> str:
    """
    Render an integer amount with exactly `precision` fractional digits.

    Precision-0 assets render as "<amount> <code>" with no symbol.
    Negative amounts (overdrawn accounts, @world) carry a leading "-".
    """
    parsed = parse_asset(asset)
    if parsed.precision == 0:
        return f"{amount} {parsed.code}"

    sign = "-" if amount < 0 else ""
    whole, fraction = divmod(abs(amount), 10 ** parsed.precision)
    return f"{sign}{currency_symbol(parsed.code)}{whole}.{fraction:0{parsed.precision}d}"
