#!/usr/bin/env python3
"""
NetBox DNS Verify - Main Entry Point

This is the main entry point for the NetBox DNS verifier.
It can be run directly or imported as a module.
"""

from netbox_dns_verify.cli.main import main

if __name__ == "__main__":
    main()
