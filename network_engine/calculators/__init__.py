"""
Calculators Package

Network traversal, rate resolution, stage and commission calculation.
"""

from .commission import CommissionCalculator
from .network import NetworkIndex
from .rates import RateHistory
from .stage import StageCalculator

__all__ = [
    "NetworkIndex",
    "RateHistory",
    "StageCalculator",
    "CommissionCalculator",
]
