"""Constellate: mood-vector atlas and constellation engine."""

from constellate.atlas import AtlasStore
from constellate.identity import ClusterIdentityCache, cluster_signature
from constellate.pipeline import ConstellationEngine

__all__ = ["AtlasStore", "ClusterIdentityCache", "ConstellationEngine", "cluster_signature"]

__version__ = "0.1.0"
