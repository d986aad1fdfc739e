"""Hivemind — multi-agent task dispatcher.

Routes natural-language requests to specialist agents, chains them into
multi-hop workflows, gates each specialist call behind an x402
micropayment, and streams task progress to subscribers in real time.
"""

__version__ = "0.2.0"
