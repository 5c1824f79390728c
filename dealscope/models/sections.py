"""
Deal workflow stages, per-stage section models and derived metrics.
"""

import math
import re
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List, Union, Literal

from dealscope.models.score import DealScore

# Workflow order; saving a stage raises the deal progress to its milestone
STAGES = [
    {'type': 'sourcing', 'title': 'Sourcing & Screening', 'milestone': 15},
    {'type': 'financial', 'title': 'Financial Analysis', 'milestone': 30},
    {'type': 'rehab', 'title': 'Rehab & Inspections', 'milestone': 45},
    {'type': 'legal', 'title': 'Legal & Title', 'milestone': 60},
    {'type': 'financing', 'title': 'Financing & Equity', 'milestone': 75},
    {'type': 'marketplace', 'title': 'Marketplace Comparisons', 'milestone': 90},
    {'type': 'review', 'title': 'Final Review', 'milestone': 100},
]

STAGE_TYPES = [stage['type'] for stage in STAGES]
ANALYSIS_STAGE_TYPES = STAGE_TYPES[:-1]

Amount = Union[str, float, int, None]


def get_stage(section_type: str) -> Optional[Dict[str, Any]]:
    for stage in STAGES:
        if stage['type'] == section_type:
            return stage
    return None


def next_stage(section_type: str) -> Optional[Dict[str, Any]]:
    index = STAGE_TYPES.index(section_type)
    return STAGES[index + 1] if index + 1 < len(STAGES) else None


def stage_completion(progress: int) -> List[Dict[str, Any]]:
    """Per-stage completion derived from the deal progress."""
    return [dict(stage, completed=progress >= stage['milestone']) for stage in STAGES]


def workflow_order(sections: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort sections by workflow position; unknown types go last."""
    def position(section):
        section_type = section.get('section_type')
        return STAGE_TYPES.index(section_type) if section_type in STAGE_TYPES else len(STAGE_TYPES)
    return sorted(sections, key=position)


def parse_amount(value: Any) -> float:
    """Parse user-entered money like "$1,200" or 1200.5; anything unparsable is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    cleaned = re.sub(r'[^0-9.]', '', str(value))
    try:
        return float(cleaned) if cleaned else 0.0
    except ValueError:
        return 0.0


# Stage models

class SourcingData(BaseModel):
    listing_price: Amount = None
    current_rents: Amount = None
    comps: Optional[str] = None


class FinancialData(BaseModel):
    current_rent: Amount = None
    stabilized_rent: Amount = None
    vacancy: Amount = None
    opex: Amount = None
    noi: Amount = None


class RehabEstimate(BaseModel):
    category: str
    description: Optional[str] = ''
    cost: float = Field(0, ge=0)
    timeframe: int = Field(0, ge=0)


class ContractorRecommendation(BaseModel):
    name: str
    specialty: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    contact_info: Optional[str] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    estimated_time: Optional[str] = None
    notes: Optional[str] = None


class RehabData(BaseModel):
    estimates: List[RehabEstimate] = []
    contractors: List[ContractorRecommendation] = []


class PurchaseAgreement(BaseModel):
    status: Literal['not_uploaded', 'pending_review', 'approved', 'rejected'] = 'not_uploaded'
    notes: Optional[str] = ''


class TitleInsurance(BaseModel):
    status: Literal['pending', 'ordered', 'received'] = 'pending'
    provider: Optional[str] = None
    policy_number: Optional[str] = None
    coverage: Optional[float] = None


class LegalReview(BaseModel):
    status: Literal['pending', 'in_progress', 'completed'] = 'pending'
    findings: List[str] = []
    recommendations: List[str] = []


class LegalData(BaseModel):
    title_company: Optional[str] = ''
    title_search_status: Literal['not_started', 'in_progress', 'completed'] = 'not_started'
    purchase_agreement: PurchaseAgreement = PurchaseAgreement()
    title_insurance: TitleInsurance = TitleInsurance()
    legal_review: LegalReview = LegalReview()


class FinancingData(BaseModel):
    loan_amount: float = Field(0, ge=0)
    interest_rate: float = Field(0, ge=0)
    required_equity: float = Field(0, ge=0)
    investor_split: float = Field(0, ge=0, le=100)


class Comparable(BaseModel):
    address: str
    price: float = Field(ge=0)
    sqft: float = Field(ge=0)
    days_on_market: Optional[int] = Field(None, ge=0)


class MarketplaceData(BaseModel):
    comparables: List[Comparable] = []


class ReviewPublish(BaseModel):
    """Final review submitted when an analyst publishes a deal."""
    score: DealScore
    executive_summary: str
    final_notes: Optional[str] = None
    time_spent: Optional[float] = Field(None, ge=0)

    @field_validator('executive_summary')
    @classmethod
    def validate_summary(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Executive summary is required')
        return v


STAGE_MODELS = {
    'sourcing': SourcingData,
    'financial': FinancialData,
    'rehab': RehabData,
    'legal': LegalData,
    'financing': FinancingData,
    'marketplace': MarketplaceData,
}


# Enrichment: each function receives the validated data and the other saved
# sections of the deal keyed by type.

def enrich_sourcing(data: Dict[str, Any], sections: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    data['listing_price_value'] = parse_amount(data.get('listing_price'))
    data['current_rents_value'] = parse_amount(data.get('current_rents'))
    return data


def enrich_financial(data: Dict[str, Any], sections: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    sourcing = sections.get('sourcing')
    if not sourcing or not sourcing.get('listing_price'):
        return data

    noi = parse_amount(data.get('noi'))
    current_rent = parse_amount(data.get('current_rent'))
    price = parse_amount(sourcing.get('listing_price'))
    annual_rent = current_rent * 12

    data['cap_rate'] = round(noi / price * 100, 2) if price > 0 else 0.0
    data['grm'] = round(price / annual_rent, 2) if annual_rent > 0 else 0.0
    return data


def enrich_rehab(data: Dict[str, Any], sections: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    estimates = data.get('estimates') or []
    data['total_cost'] = sum(estimate['cost'] for estimate in estimates)
    data['average_timeframe'] = (
        math.ceil(sum(estimate['timeframe'] for estimate in estimates) / len(estimates))
        if estimates else 0
    )
    return data


def enrich_financing(data: Dict[str, Any], sections: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    loan = data['loan_amount']
    data['annual_interest'] = round(loan * data['interest_rate'] / 100, 2)

    price = parse_amount((sections.get('sourcing') or {}).get('listing_price'))
    if price > 0:
        data['loan_to_value'] = round(loan / price * 100, 2)

    financial = sections.get('financial')
    if financial and data['required_equity'] > 0:
        noi = parse_amount(financial.get('noi'))
        data['cash_on_cash'] = round((noi - data['annual_interest']) / data['required_equity'] * 100, 2)

    return data


def enrich_marketplace(data: Dict[str, Any], sections: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    comparables = data.get('comparables') or []
    for comparable in comparables:
        comparable['price_per_sqft'] = (
            round(comparable['price'] / comparable['sqft'], 2) if comparable['sqft'] > 0 else 0.0
        )

    if comparables:
        data['average_price'] = round(sum(c['price'] for c in comparables) / len(comparables), 2)
        data['average_price_per_sqft'] = round(
            sum(c['price_per_sqft'] for c in comparables) / len(comparables), 2
        )
    else:
        data['average_price'] = 0.0
        data['average_price_per_sqft'] = 0.0
    return data


ENRICHERS = {
    'sourcing': enrich_sourcing,
    'financial': enrich_financial,
    'rehab': enrich_rehab,
    'financing': enrich_financing,
    'marketplace': enrich_marketplace,
}


def prepare_section_data(
    section_type: str,
    raw: Dict[str, Any],
    sections: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Validate raw stage data (raises pydantic ValidationError) and add the
    derived metrics of the stage.
    """
    model = STAGE_MODELS[section_type]
    data = model.model_validate(raw).model_dump()
    enricher = ENRICHERS.get(section_type)
    return enricher(data, sections) if enricher else data
