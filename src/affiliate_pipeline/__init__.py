"""
Affiliate Pipeline - retrieval of affiliate network transaction data.
"""
