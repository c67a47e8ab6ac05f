"""HTTP API models and routers."""
