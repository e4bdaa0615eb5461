"""Offline-first trip client for the vendor booking backend."""
