"""Metric source connectors for AdPulse"""

from adpulse.connectors.base import BaseConnector, ConnectorNotConfigured
from adpulse.connectors.google_ads import GoogleAdsConnector
from adpulse.connectors.meta_ads import MetaAdsConnector
from adpulse.connectors.calendly import CalendlyConnector
from adpulse.connectors.stripe_revenue import StripeRevenueConnector

__all__ = [
    "BaseConnector",
    "ConnectorNotConfigured",
    "GoogleAdsConnector",
    "MetaAdsConnector",
    "CalendlyConnector",
    "StripeRevenueConnector",
]
