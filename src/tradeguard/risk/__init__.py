"""Risk engine, formulas, and emergency protocol."""

from .emergency import EmergencyProtocol
from .engine import RiskEngine

__all__ = ["EmergencyProtocol", "RiskEngine"]
