"""
DealScore breakdown model.
"""

from pydantic import BaseModel, model_validator
from typing import Dict

# Category -> maximum points; the maxima add up to 100
SCORE_CATEGORIES = {
    'cash_flow': 15,
    'appreciation': 10,
    'arv_vs_purchase': 10,
    'location_quality': 10,
    'rent_demand': 10,
    'rehab_complexity': 10,
    'financing_readiness': 10,
    'exit_strategies': 10,
    'tenant_profile': 5,
    'property_type': 5
}

MAX_SCORE = sum(SCORE_CATEGORIES.values())


class DealScore(BaseModel):
    """Analyst scoring of a deal; every category must stay within its maximum."""
    cash_flow: float = 0
    appreciation: float = 0
    arv_vs_purchase: float = 0
    location_quality: float = 0
    rent_demand: float = 0
    rehab_complexity: float = 0
    financing_readiness: float = 0
    exit_strategies: float = 0
    tenant_profile: float = 0
    property_type: float = 0

    @model_validator(mode='after')
    def check_bounds(self):
        for category, maximum in SCORE_CATEGORIES.items():
            value = getattr(self, category)
            if value < 0 or value > maximum:
                raise ValueError(f'{category} must be between 0 and {maximum}')
        return self

    @property
    def total(self) -> float:
        return round(sum(getattr(self, category) for category in SCORE_CATEGORIES), 2)

    def breakdown(self) -> Dict[str, float]:
        data = self.model_dump()
        data['total'] = self.total
        return data
