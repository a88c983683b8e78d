"""
TapMoney - Source Package

Turns free-form spoken or typed sentences into structured expense records
and derives calendar summaries from them.

DESIGN PRINCIPLES:
1. The remote parser is an untrusted black box - validate everything it returns
2. Fail visibly, never half-way (no partial inserts)
3. Every calendar computation happens in one fixed civil timezone
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "TapMoney Team"
