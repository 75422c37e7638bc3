"""
Data Generation Module
"""
from .generators import TransactionGenerator

__all__ = [
    "TransactionGenerator",
]
