"""
Clerk webhook response schemas.
"""

from typing import Optional

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned once every event of a delivery is dispatched."""
    received: bool = True
    status: str = "processed"
    processed: int = 0
    skipped: int = 0
    ignored: int = 0
    dropped: int = 0
    message: Optional[str] = None


class WebhookHealthResponse(BaseModel):
    status: str = "ok"
    configured: bool
