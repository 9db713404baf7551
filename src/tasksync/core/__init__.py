"""Core sync engine for TaskSync.

CRITICAL: This package must have NO Flask dependencies.
"""
