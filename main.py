#!/usr/bin/env python3
"""
lesnek: Let's Encrypt (ACME v1) certificates for web roots.

This is the main entry point for the command line interface.
"""

from lesnek.cli import main

if __name__ == "__main__":
    main()
