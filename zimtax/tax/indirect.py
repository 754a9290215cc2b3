from zimtax.core.utils import as_number, setup_logging
from zimtax.tax.rules import TaxRules

logger = setup_logging("indirect")

def compute_vat(amount: float, rules: TaxRules, exempt: bool = False) -> float:
    if exempt:
        return 0.0
    return max(0.0, as_number(amount)) * rules.vat_rate

def compute_withholding(amount: float, kind: str, rules: TaxRules) -> float:
    """Withholding tax on royalties, fees, interest or tenders."""
    rate = rules.withholding_rates.get((kind or "").strip().lower())
    if rate is None:
        logger.warning("no withholding rate for %r, withholding 0", kind)
        return 0.0
    return max(0.0, as_number(amount)) * rate
