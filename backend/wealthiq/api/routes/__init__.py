# API routes
from wealthiq.api.routes import webhooks_clerk
from wealthiq.api.routes import hubspot_sync

__all__ = ["webhooks_clerk", "hubspot_sync"]
