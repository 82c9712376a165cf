"""HTTP API for operators of a running solver."""
