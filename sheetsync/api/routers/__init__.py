"""
FastAPI routers for the import API.

Routers translate domain errors from ``sheetsync.domain.imports`` into HTTP
responses; all import logic lives in the domain layer.
"""
