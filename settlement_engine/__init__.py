"""
Home Poker Settlement Engine

Turns the net positions of a cash-game session into a payment plan that
clears every debt with the fewest hand-to-hand payments, and explains
the arithmetic behind it.

DESIGN PRINCIPLES:
1. Integer minor units only, never floating-point money
2. Same input, same settlement (deterministic tie-breaks)
3. Fail early, fail visibly: no partial settlements
4. Every check leaves an audit trail entry
5. Warnings are data attached to a valid result
"""

__version__ = "1.0.0"
__author__ = "Home Poker Settlement Team"
