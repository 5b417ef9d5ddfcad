"""
Symptom Checker Backend

Emergency triage, clarifying questions and knowledge-base grounded
symptom analysis behind a small JSON API.
"""

__version__ = "1.0.0"
