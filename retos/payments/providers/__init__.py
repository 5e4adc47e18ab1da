from __future__ import annotations

from retos.core.config import get_settings
from retos.payments.errors import ProviderNotConfiguredError
from retos.payments.providers.base import PaymentProvider
from retos.payments.providers.stripe_provider import StripeProvider
from retos.payments.providers.wompi_provider import WompiProvider


def get_payment_provider(name: str) -> PaymentProvider:
    settings = get_settings()
    if name == StripeProvider.name:
        if not settings.stripe_webhook_secret:
            raise ProviderNotConfiguredError(name)
        return StripeProvider(webhook_secret=settings.stripe_webhook_secret)
    if name == WompiProvider.name:
        if not settings.wompi_event_secret:
            raise ProviderNotConfiguredError(name)
        return WompiProvider(event_secret=settings.wompi_event_secret)
    raise ProviderNotConfiguredError(name)


__all__ = [
    "PaymentProvider",
    "StripeProvider",
    "WompiProvider",
    "get_payment_provider",
]
