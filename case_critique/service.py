"""
Process wiring for the analysis pipeline.

Build one analyzer per process at startup and hand it to request handlers;
the ledger and edge limiter inside it hold the shared rate-limit state.
"""

import logging
from typing import Optional

from .config.loader import CritiqueConfig, StorageBackend, default_config
from .core.analysis import CaseAnalyzer, TextGenerator
from .core.rate_limiter import EdgeRateLimiter
from .core.usage_ledger import UsageLedger
from .sdk.openai_client import OpenAIGateway
from .storage.repository import SqliteUsageStore
from .storage.stores import InMemoryUsageStore, UsageStore

logger = logging.getLogger(__name__)


def build_store(config: CritiqueConfig) -> UsageStore:
    if config.storage.backend == StorageBackend.SQLITE:
        return SqliteUsageStore(config.storage.db_path)
    return InMemoryUsageStore()


def build_ledger(config: Optional[CritiqueConfig] = None) -> UsageLedger:
    config = config or default_config()
    return UsageLedger(
        store=build_store(config),
        requests_per_minute=config.limits.requests_per_minute
    )


def build_gateway(config: Optional[CritiqueConfig] = None) -> OpenAIGateway:
    config = config or default_config()
    return OpenAIGateway(
        model=config.llm.model,
        timeout=config.llm.timeout_seconds,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_output_tokens,
    )


def build_analyzer(
    config: Optional[CritiqueConfig] = None,
    gateway: Optional[TextGenerator] = None,
) -> CaseAnalyzer:
    """Construct a fully wired analyzer.

    Args:
        config: Analyzer configuration (defaults when omitted)
        gateway: Model gateway override; an OpenAIGateway is built otherwise

    Raises:
        LLMTransportError: If the default gateway cannot be created
    """
    config = config or default_config()
    analyzer = CaseAnalyzer(
        gateway=gateway if gateway is not None else build_gateway(config),
        ledger=build_ledger(config),
        edge_limiter=EdgeRateLimiter(
            limit=config.limits.edge_requests_per_minute,
            window_seconds=config.limits.edge_window_seconds
        ),
    )
    logger.info(
        "Analyzer ready: model=%s storage=%s per-minute=%d edge=%d/%gs",
        config.llm.model, config.storage.backend.value,
        config.limits.requests_per_minute,
        config.limits.edge_requests_per_minute, config.limits.edge_window_seconds
    )
    return analyzer
