"""
Security module for Reflect.

Provides encrypted storage of the user's provider keys and the device
PIN lock.
"""
