"""
grainsim - Sampling-grain effects on biodiversity meta-analysis.

Simulate communities, sample them with quadrats, compute log-ratio effect
sizes and standardize them with individual-based rarefaction.
"""

from grainsim.community import Community, generate_community
from grainsim.config import SimulationConfig, load_config
from grainsim.metrics import log_ratio, sample_metrics
from grainsim.pipeline import run_meta_analysis
from grainsim.rarefaction import rarefy
from grainsim.sampling import Placement, Sample, sample_quadrats

__version__ = "0.1.0"
__all__ = [
    "Community",
    "Placement",
    "Sample",
    "SimulationConfig",
    "__version__",
    "generate_community",
    "load_config",
    "log_ratio",
    "rarefy",
    "run_meta_analysis",
    "sample_metrics",
    "sample_quadrats",
]
