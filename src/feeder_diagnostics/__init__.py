"""
Feeder Diagnostics
==================

Load diagnostics for distribution transformers monitored per feeder leg:
- Bulk phase loads, percentage load and calculated neutral current
- Neutral and phase imbalance severity classification
- Ordered findings with phase rebalancing and load reduction actions

Architecture:
- loading/: assessment, diagnosis, input models and CLI
"""

from .loading import compute_assessment, diagnose, diagnose_structured

__version__ = "1.0.0"

__all__ = ["compute_assessment", "diagnose", "diagnose_structured", "__version__"]
