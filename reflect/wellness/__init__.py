"""
Wellness tools outside the coaching chat: mood logging and trends,
the 4-7-8 breathing exercise, and the daily quote and check-in.
"""
