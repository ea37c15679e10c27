"""Scoring tables shared by the matcher, resolver and ingestion. Tunable thresholds live in Config."""

# Identifier matches short-circuit the cascade
COMPANY_NUMBER_MATCH = 100
VAT_NUMBER_MATCH = 95

# Name tiers: (minimum similarity, points)
NAME_EXACT = 30
NAME_TIERS = ((90, 25), (70, 20), (50, 10))

ADDRESS_FULL = 25           # line1 + city + country
ADDRESS_CITY_COUNTRY = 15
ADDRESS_COUNTRY = 10

DOMAIN_MATCH = 20

# Mixed-signal matches below this report their largest dedicated signal
COMPOSITE_MIN_CONFIDENCE = 50

PHONE_MATCH = 5
EMAIL_MATCH = 5

BANK_IBAN = 20
BANK_ACCOUNT_NUMBER = 15
BANK_NAME_ONLY = 10

# Creation score extras
CREATE_BASE_NAME = 30
CREATE_COMPANY_NUMBER = 15
CREATE_VAT_NUMBER = 10
CREATE_EMAIL = 5
CREATE_EMAIL_DOMAIN = 20
CREATE_PHONE = 5
CREATE_WEBSITE = 20

# Extraction confidence multiplier: (minimum average confidence, multiplier)
CONFIDENCE_MULTIPLIERS = ((80, 1.0), (60, 0.8), (40, 0.6))
LOW_CONFIDENCE_MULTIPLIER = 0.4

# Fuzzy name heuristics
NAME_CONTAINMENT_SCORE = 85
NAME_ACRONYM_SCORE = 75
ACRONYM_MIN_LENGTH = 3

# Global registry
GLOBAL_VAT_NAME_MIN = 70
GLOBAL_DOMAIN_MAX = 90
GLOBAL_FUZZY_NAME_MIN = 85

# Slugs
SLUG_MAX_LENGTH = 50
SLUG_FALLBACK = "supplier"
