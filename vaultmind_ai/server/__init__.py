"""
VaultMind-AI Server Package.

This package contains the web server for the VaultMind-AI assistant.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Configuration settings and constants.
    exception_handlers: Mapping of assistant errors to HTTP responses.
    services: Wiring of the assistant service used by the endpoints.
"""
