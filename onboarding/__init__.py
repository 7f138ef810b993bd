"""
Asynchronous organization onboarding for the identity service.

When an organization is created, or attached to a baselined application, a
set of broker-driven stages provisions its vault, runs a pairwise key exchange
with every peer organization in the application, and registers it on the
on-chain organization registry.
"""
