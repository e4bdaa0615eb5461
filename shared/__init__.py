"""Shared schemas and errors for the vendor booking offline client."""
