"""
Health check endpoint schemas.

The health endpoint is PUBLIC (no authentication required).
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    Response model for GET /health endpoint.

    Used by load balancers, monitoring systems, and deployment checks.
    """

    status: str = Field(
        default="ok",
        description="Health status of the API (always 'ok' if responding)",
        examples=["ok"]
    )
    service: str = Field(
        default="doula-crm-backend",
        description="Service identifier",
        examples=["doula-crm-backend"]
    )
    environment: str = Field(
        ...,
        description="Deployment environment (development, testing, production)",
        examples=["production"]
    )
