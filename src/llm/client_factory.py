# src/llm/client_factory.py - v1
"""Factory: instantiate an AI backend client from its provider name.

Called by the router when it builds its backend handles from settings.
"""

from __future__ import annotations

import importlib
import logging

from codexplain.config.settings import Settings
from codexplain.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "codexplain.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "codexplain.llm.adapters.openai_adapter.OpenAIAdapter",
    "google": "codexplain.llm.adapters.google_adapter.GoogleAdapter",
    "ollama": "codexplain.llm.adapters.ollama_adapter.OllamaAdapter",
}

CLOUD_PROVIDERS: set[str] = {"anthropic", "openai", "google"}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (anthropic, openai, google, ollama).
        model: Model name. Defaults to the model configured for the provider.
        settings: Application settings (API keys, endpoints, models).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported AI provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    if model is None and settings is not None:
        model = settings.model_for(provider)
    if model:
        init_kwargs["model"] = model

    if settings is not None:
        if provider == "anthropic":
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)
        elif provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
        elif provider == "google":
            init_kwargs.setdefault("api_key", settings.google_api_key)
        elif provider == "ollama":
            init_kwargs.setdefault("host", settings.ollama_base_url)

    logger.debug("Creating AI client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str, cloud: bool = True) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMClient.
        cloud: Whether the provider sends code off the machine.
    """
    _PROVIDER_REGISTRY[name] = class_path
    if cloud:
        CLOUD_PROVIDERS.add(name)
    logger.info("Registered AI provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
