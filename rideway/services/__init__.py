"""
Services package for the Rideway maintenance tracker.
"""

from .integration_dispatcher import DispatchResult, IntegrationDispatcher, IntegrationResult
from .transports import HomeAssistantTransport, IntegrationTransport, NtfyTransport, WebhookTransport

__all__ = [
    "IntegrationDispatcher",
    "DispatchResult",
    "IntegrationResult",
    "IntegrationTransport",
    "WebhookTransport",
    "HomeAssistantTransport",
    "NtfyTransport",
]
