"""
Proactive Signal Engine

A background loop that re-evaluates a small set of rules over a personal
journal's data and surfaces at most one actionable notification per cycle:
- Upcoming goals that have gone stale
- Short sleep the night before

Repeat notifications are suppressed per rule, either for the process
lifetime or for the rest of the calendar day.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
