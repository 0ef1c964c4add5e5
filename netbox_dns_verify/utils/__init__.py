"""
Utility functions and helpers.

This package contains the name and value normalisation helpers shared by
the validation engines.
"""

from .validators import ensure_fqdn, qualify_cname, reverse_name

__all__ = ["ensure_fqdn", "qualify_cname", "reverse_name"]
