"""
Utility functions for Bazaar.

General-purpose helpers that don't belong to a specific domain.
"""

import bazaar.utils.clock as clock
from bazaar.utils.clock import utc_now

__all__ = ["clock", "utc_now"]
