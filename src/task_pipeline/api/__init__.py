"""HTTP API for running pipelines."""
