"""
Player keep.

One keep per campaign, holding the party's facilities and hirelings. When
the party returns after N weeks the DM settles the keep: the ledger works
out upkeep, salaries and profit per currency, and the result is stored as
an immutable check-in that the history endpoint pages through.
"""
