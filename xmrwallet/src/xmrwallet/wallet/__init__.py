"""
Wallet ledger entities, amounts, addresses, history assembly and filters.
"""
