"""
ReliefOps - Disaster relief stock, budget and distribution ledger
"""
__version__ = "1.0.0"
