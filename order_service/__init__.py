"""
Order Service - order lifecycle and payment ledger
"""
__version__ = "1.0.0"
