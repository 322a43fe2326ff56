"""Core research engine, errors and observability for research-rounds."""
