from typing import Dict, List, Optional, Type

import httpx
from loguru import logger

from rostersync.config.settings import AppSettings
from rostersync.models.enums import ProviderKind
from .base_provider import BaseProvider
from .gemini_provider import GeminiProvider
from .openrouter_provider import OpenRouterProvider

PROVIDER_CLASSES: Dict[ProviderKind, Type[BaseProvider]] = {
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.OPENROUTER: OpenRouterProvider,
}


def _api_key_for(kind: ProviderKind, settings: AppSettings) -> Optional[str]:
    if kind == ProviderKind.GEMINI:
        return settings.gemini_api_key
    if kind == ProviderKind.OPENROUTER:
        return settings.openrouter_api_key
    return None


def build_providers(
    settings: AppSettings, client: Optional[httpx.AsyncClient] = None
) -> List[BaseProvider]:
    """Instantiates the configured providers in priority order.

    Entries with an unknown kind or no configured API key are skipped.
    A shared client, when given, is used by every provider.
    """
    providers: List[BaseProvider] = []
    for entry in settings.provider_order:
        kind_name, _, model = entry.partition(":")
        try:
            kind = ProviderKind(kind_name.strip().lower())
        except ValueError:
            logger.warning(f"Unknown provider kind in PROVIDER_ORDER entry '{entry}'. Skipping.")
            continue
        if not model.strip():
            logger.warning(f"PROVIDER_ORDER entry '{entry}' names no model. Skipping.")
            continue

        api_key = _api_key_for(kind, settings)
        if not api_key:
            logger.warning(f"No API key configured for {kind.value}. Skipping '{entry}'.")
            continue

        providers.append(
            PROVIDER_CLASSES[kind](
                model=model.strip(),
                api_key=api_key,
                client=client,
                timeout_seconds=settings.request_timeout_seconds,
                transport_retry_attempts=settings.transport_retry_attempts,
            )
        )

    logger.info(f"Configured providers: {[p.provider_id for p in providers]}")
    return providers
