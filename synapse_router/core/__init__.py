"""Synapse Router - core models, errors and provider HTTP client."""
