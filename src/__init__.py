"""
Subscription Tracker - Source Package

Track recurring payments and see what they really cost.

DESIGN PRINCIPLES:
1. Statistics are pure functions of the data and the clock
2. Money is Decimal, never float
3. Users only ever see their own subscriptions
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Subscription Tracker Team"
