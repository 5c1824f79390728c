"""
Application constants and configuration.
"""

# Complimentary credits granted to every new account
SIGNUP_BONUS_CREDITS = 3

# Credit cost per analysis depth
ANALYSIS_DEPTHS = {
    'basic': {
        'name': 'Basic Analysis',
        'description': 'Essential property evaluation',
        'credit_cost': 1,
        'features': [
            'Property valuation',
            'Basic financial metrics',
            'Location analysis',
            'Standard report'
        ]
    },
    'standard': {
        'name': 'Standard Analysis',
        'description': 'Comprehensive property analysis',
        'credit_cost': 2,
        'features': [
            'All Basic features',
            'Detailed market research',
            'Renovation potential',
            'Comparative market analysis',
            'Investment projections'
        ]
    },
    'premium': {
        'name': 'Premium Analysis',
        'description': 'In-depth investment analysis',
        'credit_cost': 3,
        'features': [
            'All Standard features',
            'Advanced financial modeling',
            'Risk assessment',
            'Growth potential analysis',
            'Investment strategy consultation',
            'Priority processing'
        ]
    }
}

# Credit packs (one-time payments). Prices in USD.
CREDIT_PACKS = [
    {
        'id': 'prod_SODfrIGB1L1XuH',
        'price_id': 'price_1RTREJ07yY3S6Wgrh5GYY5MH',
        'name': 'Elite Pack',
        'description': '50 Credits (Save 20%)',
        'price': 2250,
        'credits': 50,
        'mode': 'payment'
    },
    {
        'id': 'prod_SODfm7zxwdhhPp',
        'price_id': 'price_1RTRDw07yY3S6WgrNHz4OfER',
        'name': 'Pro Pack',
        'description': '15 credits (Save 15%)',
        'price': 825,
        'credits': 15,
        'mode': 'payment'
    },
    {
        'id': 'prod_SODe2fPVbHCVbJ',
        'price_id': 'price_1RTRDa07yY3S6WgrANGOBT5P',
        'name': 'Starter Pack',
        'description': '5 Credits',
        'price': 325,
        'credits': 5,
        'mode': 'payment'
    }
]

# Subscription plans (recurring monthly payments)
SUBSCRIPTION_PLANS = [
    {
        'id': 'prod_SODdMLyIMBDkbE',
        'price_id': 'price_1RTRCW07yY3S6WgrcMOuI7db',
        'name': 'Elite',
        'tier': 'enterprise',
        'description': 'DealScope Elite ($599/mo)',
        'features': [
            'Submit unlimited deals and monitor all in real time',
            '20 Elite Report credits/month',
            'Fast-Track 48-hr turnaround on reports',
            'Dedicated account manager & priority phone support',
            'Full API access, white-label branding & custom integrations'
        ],
        'price': 599,
        'credits': 20,
        'mode': 'subscription'
    },
    {
        'id': 'prod_SODdQ2guwuqNYZ',
        'price_id': 'price_1RTRC107yY3S6WgrUVh5yoUd',
        'name': 'Pro',
        'tier': 'pro',
        'description': 'DealScope Pro ($299/mo)',
        'features': [
            'Submit up to 3 deals and track real-time analyst progress',
            '10 Pro Report credits/month',
            'Priority email support and direct analyst chat',
            'Dashboard export & API access for portfolio tracking'
        ],
        'price': 299,
        'credits': 10,
        'mode': 'subscription'
    },
    {
        'id': 'prod_SODcQcDRBVsgIa',
        'price_id': 'price_1RTRBd07yY3S6WgrewBNAXbT',
        'name': 'Starter',
        'tier': 'basic',
        'description': 'DealScope Starter ($97/mo)',
        'features': [
            'Submit 1 deal address and track real-time analyst progress',
            '5 Basic Report credits/month',
            'Access to core dashboard and progress notifications',
            'Email support and beta feedback channel'
        ],
        'price': 97,
        'credits': 5,
        'mode': 'subscription'
    }
]


def get_product_by_price(price_id: str):
    """Look up a credit pack or plan by its Stripe price id."""
    for product in CREDIT_PACKS + SUBSCRIPTION_PLANS:
        if product['price_id'] == price_id:
            return product
    return None


# Analytics event categories
EVENT_TYPES = (
    'auth',
    'navigation',
    'feature_usage',
    'deal_progress',
    'revenue',
    'subscription',
    'customer_interaction',
    'system_performance'
)

# Days a shared report link stays valid
REPORT_SHARE_DAYS = 7
