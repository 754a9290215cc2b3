"""
Versioned rule sets keyed by tax year.
"""
from typing import Dict, Iterable, List, Optional

from zimtax.core.utils import setup_logging
from zimtax.tax.rules import TaxRules, default_rules

logger = setup_logging("rules")

class RuleBook:
    """Holds one TaxRules per tax year and resolves the set effective for a year."""

    def __init__(self, rule_sets: Optional[Iterable[TaxRules]] = None):
        self._by_year: Dict[int, TaxRules] = {}
        for rules in rule_sets or []:
            self.register(rules)

    def register(self, rules: TaxRules) -> Dict[str, int]:
        """Add or replace the rule set for rules.tax_year."""
        replaced = rules.tax_year in self._by_year
        self._by_year[rules.tax_year] = rules
        if replaced:
            logger.info("replaced rule set for tax year %s", rules.tax_year)
        return {"created": 0 if replaced else 1, "updated": 1 if replaced else 0, "total": len(self._by_year)}

    def years(self) -> List[int]:
        return sorted(self._by_year)

    def rules_for(self, year: Optional[int] = None) -> TaxRules:
        """Latest rule set effective on or before year; the earliest one if year precedes them all."""
        if not self._by_year:
            logger.warning("rule book empty, falling back to built-in rules")
            return default_rules(year)
        years = self.years()
        if year is None:
            return self._by_year[years[-1]]
        valid = [y for y in years if y <= year]
        if valid:
            return self._by_year[max(valid)]
        return self._by_year[years[0]]

    def get_stats(self) -> Dict[str, object]:
        return {
            "total_rule_sets": len(self._by_year),
            "years": self.years(),
            "latest_year": self.years()[-1] if self._by_year else None,
        }
