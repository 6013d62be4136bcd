"""
CertVault Core Module

This module contains the core business logic for CertVault including:
- Spreadsheet ingestion and per-row certificate issuance
- Certificate PDF rendering with logos, photos and QR codes
- Object storage and certificate metadata persistence
- Public certificate verification pages

The web application and the CLI are thin layers over these modules.

Example usage:
    from core.config import Settings
    from core.ingest import BatchIngestor
    from core.verify import VerificationResponder
"""

__version__ = "0.1.0"
__all__ = [
    "assets",
    "config",
    "db",
    "errors",
    "ingest",
    "issue",
    "logging",
    "models",
    "models_sql",
    "pack",
    "records",
    "render_certificate",
    "storage",
    "verify",
]
