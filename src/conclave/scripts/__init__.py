"""Operational scripts for the Conclave service."""
