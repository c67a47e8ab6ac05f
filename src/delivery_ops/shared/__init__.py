"""Shared models, exceptions, logging and metrics for the delivery operations engine."""
