"""Shared infrastructure for the invoicing packages: structured logging and typed errors."""
