"""Sto. Niño Portal API."""
