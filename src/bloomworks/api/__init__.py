"""Bloomworks — FastAPI REST API layer.

Modules
-------
main
    FastAPI application with the submission routes and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response bodies.
"""
