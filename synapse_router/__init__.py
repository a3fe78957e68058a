"""
Synapse Router - Context-Aware LLM Routing

Sits in front of interchangeable LLM providers and decides, per request,
which logical model to use and which healthy provider should serve it,
with bounded fallback, usage accounting and a small admin API.
"""

__version__ = "1.0.0"

from .orchestrator import Orchestrator

__all__ = ["Orchestrator", "__version__"]
