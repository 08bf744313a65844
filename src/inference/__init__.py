"""
Collaborator interfaces: inference engine and ray caster.
"""

from .backend import InferenceBackend, RayCaster

__all__ = ["InferenceBackend", "RayCaster"]
