"""HTTP access to the pipeline server (httpx)."""
