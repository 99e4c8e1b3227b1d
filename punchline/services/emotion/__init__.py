"""
Emotion module - Speech-emotion inference and aggregation.

Factory function for creating emotion clients based on settings.
"""

from .aggregator import aggregate
from .base import BaseEmotionClient

__all__ = ["BaseEmotionClient", "aggregate", "create_emotion_client"]


def create_emotion_client(provider: str = "hume", **kwargs) -> BaseEmotionClient:
    """
    Factory function to create an emotion client based on provider.

    Args:
        provider: Emotion provider name ("hume")
        **kwargs: Provider-specific configuration

    Returns:
        BaseEmotionClient implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "hume":
        from .hume import HumeEmotionClient
        return HumeEmotionClient(**kwargs)
    else:
        raise ValueError(f"Unknown emotion provider: {provider}")
