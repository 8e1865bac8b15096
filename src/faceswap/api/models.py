"""Pydantic response models for the Face Swap API.

These models define the JSON schema of the swap endpoint's responses.  FastAPI
uses them for serialisation and OpenAPI documentation generation.  The request
side is a multipart form and is declared directly on the route.

Models
------
SwapResponse
    Successful ``POST /swap`` result: a URL to the generated image.
ErrorResponse
    Body of every error response (400, 413, 415, 500).
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class SwapResponse(BaseModel):
    """Response body for a successful ``POST /swap``.

    Attributes:
        image: Absolute URL of the generated image under ``/outputs``.
    """

    image: str = Field(
        ...,
        description="URL of the generated image.",
    )


class ErrorResponse(BaseModel):
    """Response body for a failed request.

    Attributes:
        error: Human-readable message, safe to show to end users.
    """

    error: str = Field(
        ...,
        description="Error message.",
    )
