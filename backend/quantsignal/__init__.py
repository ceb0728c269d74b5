"""
QuantSignal Engine

Signal and risk calculation engine for streaming market prices.
"""

__version__ = "0.1.0"
