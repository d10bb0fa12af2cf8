"""Application layer: config, logging, HTTP API."""
