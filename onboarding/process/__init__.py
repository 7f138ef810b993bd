"""
The organization onboarding protocol stages.

Each stage takes a decoded event, re-reads the state it depends on, and either
returns (the delivery is acknowledged) or raises an
:class:`.OnboardingError` that the worker boundary turns into an
acknowledgment decision.
"""
