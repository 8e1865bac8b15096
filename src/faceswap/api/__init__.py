"""Face Swap Service — FastAPI REST API layer.

This package contains the FastAPI application and the Pydantic response
models.

Modules
-------
main
    FastAPI application factory, the ``/swap`` route handler, and the
    ``main()`` CLI entry point.
models
    Pydantic models for API response validation.
"""
