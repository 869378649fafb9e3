"""Catalogue spreadsheet ingestion core.

Parses back-office spreadsheet exports into normalized product rows, recovers
embedded product images, and reconciles the result against previously
published catalogue versions.
"""

__version__ = "0.1.0"
