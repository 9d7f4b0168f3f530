"""Cortex core: the facade plus shared validation and serialization helpers.

    from cortex.core import Cortex
"""

from cortex.core.cortex_class import Cortex

__all__ = ["Cortex"]
