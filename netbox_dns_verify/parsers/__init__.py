"""
Input parsers.

This package contains parsers for auxiliary input files such as TSIG keys.
"""

from .tsig import parse_tsig_key, parse_tsig_key_file

__all__ = ["parse_tsig_key", "parse_tsig_key_file"]
