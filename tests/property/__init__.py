"""
Property-based tests for CertVault naming rules.

Hypothesis checks that recipient names of any shape map to safe object
keys and unique archive member names.
"""
