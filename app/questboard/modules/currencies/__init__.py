"""
Campaign-scoped currencies.

Facilities and hirelings refer to a currency by its abbreviation string, so
renaming a currency never rewrites historical check-in snapshots.
"""
