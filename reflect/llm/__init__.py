"""
LLM Layer — BYOK provider adapters and fallback routing.

Provides one `send` contract over three hosted chat APIs (Groq,
DeepSeek, Gemini) and a router that chains the tier-specific provider
to the Gemini fallback.

Modules:
- llm_config: Tier profiles, retry policy, mode → tier mapping
- retry: with_backoff — bounded exponential retry for one HTTP call
- adapters: ProviderAdapter and its Fast/Deep/Fallback variants
- router: ProviderRouter — selection, fallback, RouterOutcome
"""
