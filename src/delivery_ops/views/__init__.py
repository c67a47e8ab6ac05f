"""Cached aggregate views over the record store."""
