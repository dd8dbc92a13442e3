"""
Scripts package for the hybrid join audit.

This package contains command-line scripts organized by functionality.

Subpackages:
- hybrid_join: Reconciliation of AD, Entra ID and Intune device inventories
"""

__version__ = "0.1.0"
