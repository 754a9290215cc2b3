"""
Progressive bracket tax using the deduction method.

For the band containing the amount, tax = amount * rate - deduct, where each
band's deduct equals the tax a pure marginal computation would have accrued at
its lower bound. This makes the lookup O(1) and equal to marginal summation.
"""
from typing import List, Optional

from zimtax.core.utils import as_number
from zimtax.tax.rules import BracketTable, TaxBand

def find_band(amount: float, table: BracketTable) -> Optional[TaxBand]:
    """Band with the greatest lower bound not above amount.

    Amounts that fall between a band's max and the next band's min
    (100.005 between 100 and 100.01) stay in the lower band.
    """
    amount = as_number(amount)
    if amount < 0:
        return None
    chosen = None
    for band in table:
        if band.min <= amount:
            chosen = band
        else:
            break
    return chosen

def bracket_tax(amount: float, table: BracketTable) -> float:
    amount = as_number(amount)
    if amount <= 0:
        return 0.0
    band = find_band(amount, table)
    if band is None:
        return 0.0
    return max(0.0, amount * band.rate - band.deduct)

def marginal_tax(amount: float, table: BracketTable) -> float:
    """Tax by summing every band slice. Band i starts where band i-1 ended."""
    amount = as_number(amount)
    if amount <= 0:
        return 0.0
    tax = 0.0
    lower = 0.0
    for band in table:
        upper = amount if band.max is None else min(amount, band.max)
        if upper > lower:
            tax += (upper - lower) * band.rate
        if band.max is None or amount <= band.max:
            break
        lower = band.max
    return tax

def implied_deductions(table: BracketTable) -> List[float]:
    """Deduction constants a marginal computation implies for each band."""
    result = []
    for band in table:
        if band.min == 0:
            result.append(0.0)
            continue
        result.append(band.min * band.rate - marginal_tax(band.min, table))
    return result

def check_deductions(table: BracketTable, tolerance: float = 1.0) -> bool:
    """True when the tabulated deduct constants agree with marginal taxation."""
    return all(abs(band.deduct - implied) <= tolerance
               for band, implied in zip(table, implied_deductions(table)))

def top_rate(table: BracketTable) -> float:
    return table[len(table) - 1].rate
