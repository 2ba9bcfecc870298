"""Price quote sources"""

from flashbot.sources.quote_source import (
    CircuitBreaker,
    CircuitState,
    CoinGeckoQuoteSource,
    QuoteSource,
)

__all__ = ["CircuitBreaker", "CircuitState", "CoinGeckoQuoteSource", "QuoteSource"]
