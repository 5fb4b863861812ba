"""
Park proximity valuation

Derives real-estate valuation premiums from the distance to city parks:
valuation buffers, area coverage estimates, nearest park edge queries and
point valuations over the Chicago open-data park and community area sets.
"""

from .pipeline import ValuationPipeline, PipelineStateError

__version__ = "1.0.0"

__all__ = ["ValuationPipeline", "PipelineStateError"]
