"""Integrations with the datastore, broker and external collaborators."""
