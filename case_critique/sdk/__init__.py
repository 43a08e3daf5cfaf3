"""
SDK for Case Critique.

Provides the gateway to the external text-generation endpoint.
"""

from .openai_client import ConnectionCheck, OpenAIGateway

__all__ = ["ConnectionCheck", "OpenAIGateway"]
