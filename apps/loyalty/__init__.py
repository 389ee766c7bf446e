"""
Loyalty App - Points and Stamps Ledger

Records purchases as earn events, redemptions as spend events, and keeps
each customer's balance equal to the sum of their ledger history.
"""
