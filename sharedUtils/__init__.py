"""Shared utilities: configuration, logging and mail."""
