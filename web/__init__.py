"""
CertVault Web Module

Jinja2 templates for the public verification pages and the static assets
they reference.
"""

__version__ = "0.1.0"
__all__ = []
