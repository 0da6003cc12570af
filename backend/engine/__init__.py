"""
Truth or Dare room engine.
Pure room state machine: no web framework, database, or UI.
"""

CHALLENGE_TYPES = ("truth", "dare")
