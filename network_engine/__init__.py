"""
NETWORK COMMISSION ENGINE
Stages, commissions and payment lifecycle for a multi-level sales network.
"""

from .config import EngineConfig
from .errors import DataIntegrityWarning, NotFoundError, PolicyViolation, ValidationError
from .models import NetworkResult, NetworkSnapshot
from .processor import NetworkProcessor

__all__ = [
    'NetworkProcessor',
    'NetworkSnapshot',
    'NetworkResult',
    'EngineConfig',
    'ValidationError',
    'PolicyViolation',
    'DataIntegrityWarning',
    'NotFoundError',
]
