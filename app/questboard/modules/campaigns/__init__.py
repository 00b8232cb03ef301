"""
Campaigns and memberships.

A campaign is the authorization boundary for everything else: currencies,
the player keep and its history all hang off one campaign, and a user's
membership role (DM or PLAYER) decides what they may change there.
"""
