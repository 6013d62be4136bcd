"""
CertVault CLI Module

Command-line interface for CertVault using Typer.

Available commands:
- init-db: Create the certificate tables
- issue: Issue certificates from a local spreadsheet
- verify: Check a certificate code
- token: Mint an access token for the API

Example usage:
    certvault issue recipients.xlsx --institution "Example University"
    certvault verify 6f1c0c2e-...
"""

__version__ = "0.1.0"
__all__ = ["main"]
