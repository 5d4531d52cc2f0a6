"""
Core types for tokenization.
"""

type TokenId = int
type TokenText = str
type MergePair = tuple[TokenText, TokenText]
