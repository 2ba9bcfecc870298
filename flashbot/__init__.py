"""FlashBot arbitrage opportunity detection and aggregation engine"""

__version__ = "1.0.0"
