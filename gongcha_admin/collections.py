"""Document store collection names.

Each collection maps to one Supabase table (``id text`` + ``data jsonb``),
see ``supabase/migrations``. Use these constants instead of string literals.
"""

USERS = "users"
STAFF = "staff"
STORES = "stores"
PRODUCTS = "products"
REWARDS = "rewards_catalog"
SETTINGS = "settings"
TRANSACTIONS = "transactions"

GLOBAL_SETTINGS_ID = "global"
BOOTSTRAP_CLAIM_ID = "bootstrap_admin"
