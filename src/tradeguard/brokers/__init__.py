"""Broker implementations."""

from .base import Broker
from .bybit_spot import BybitSpotBroker
from .paper_broker import PaperBroker

__all__ = ["Broker", "BybitSpotBroker", "PaperBroker"]
