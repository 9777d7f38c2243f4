"""Voxel-grid accelerated Monte Carlo path tracer for triangle meshes."""

__version__ = "0.1.0"