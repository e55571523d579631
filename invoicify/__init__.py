"""Invoicify: local-first business records mirrored to a Google Sheet."""
