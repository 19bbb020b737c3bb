"""Servicios de aplicación."""

from app.application.services.pricing_engine import PricingEngine

__all__ = ["PricingEngine"]
