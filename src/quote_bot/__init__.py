"""
quote-bot: Telegram bot relaying quotes from a quote archive.

Incoming updates are routed by each chat's session state and handled on a
bounded worker pool with a timed admission wait.
"""

__version__ = "0.1.0"
