"""
One-time access tokens. The codec signs and verifies offline; the ledger
persists records and consumes each token exactly once.
"""
from nightpass.tokens.codec import TokenCodec
from nightpass.tokens.models import Token, TokenConsumption, TokenRejection, TokenVerification
from nightpass.tokens.service import TokenLedger

__all__ = [
    "Token",
    "TokenCodec",
    "TokenConsumption",
    "TokenLedger",
    "TokenRejection",
    "TokenVerification",
]
