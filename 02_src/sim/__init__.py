"""Webhook traffic simulator."""

from .sim import ISim, Sim, build_text_delivery, sign_body

__all__ = ["ISim", "Sim", "build_text_delivery", "sign_body"]
