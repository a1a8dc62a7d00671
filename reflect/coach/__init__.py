"""
Coaching chat — the session message log, its archive-and-reset
lifecycle, and the service that routes each outgoing message.
"""
