"""HTTP API for the Conclave service."""
