"""
Central constants for the Questboard application.
"""
from __future__ import annotations

# Global (site-wide) user roles
ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
USER_ROLES = frozenset({ROLE_ADMIN, ROLE_USER})

# Per-campaign membership roles
CAMPAIGN_ROLE_DM = "DM"
CAMPAIGN_ROLE_PLAYER = "PLAYER"
CAMPAIGN_ROLES = frozenset({CAMPAIGN_ROLE_DM, CAMPAIGN_ROLE_PLAYER})

# Access levels understood by rbac.require_campaign_access
ACCESS_MEMBER = "member"
ACCESS_MANAGE = "manage"

# Seeded by currencies.service.initialize_default_currencies
DEFAULT_CURRENCIES = (
    ("Gold Pieces", "gp", "Standard gold currency"),
    ("Silver Pieces", "sp", "Standard silver currency"),
    ("Copper Pieces", "cp", "Standard copper currency"),
    ("Platinum Pieces", "pp", "Standard platinum currency"),
    ("Electrum Pieces", "ep", "Standard electrum currency"),
)

MAX_CHECK_IN_PAGE_SIZE = 100

# Merchant stock: staples are always carried, rotating stock changes between visits
STOCK_STAPLE = "STAPLE"
STOCK_ROTATING = "ROTATING"
STOCK_TYPES = (STOCK_STAPLE, STOCK_ROTATING)
VARIABLE_PRICE = -1  # stored price for "ask the merchant"

DEFAULT_CREATURE_CATEGORY = "NPC"
