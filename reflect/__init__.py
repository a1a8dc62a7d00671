"""
Reflect - a CBT journaling coach that routes each message across the
user's own LLM provider keys, with retry and fallback.
"""

__version__ = "0.1.0"
