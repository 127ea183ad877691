"""
Ledger Assistant - Source Package

The conversational financial assistant of an agency bookkeeping tool.
It answers questions about expenses, receivables and per-service revenue,
registers new revenue entries from chat commands and turns spreadsheet
samples into import drafts.

DESIGN PRINCIPLES:
1. Deterministic first, generative last
2. Never fabricate data
3. Never leak restricted records
4. Never silently accept malformed generated output
5. Every step must be auditable
"""

__version__ = "1.0.0"
__author__ = "Ledger Assistant Team"
