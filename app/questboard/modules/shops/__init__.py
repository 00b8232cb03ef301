"""
Campaign merchants and their stock.

Stock items are priced in one of the campaign's currencies (by id, unlike keep
rates), so a currency cannot be deleted while any merchant still prices in it.
"""
