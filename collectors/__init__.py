"""
Collectors Package

Synthetic detection sources: the simulated live feed used by the demo
dashboard and the mock data generator used to seed a demo database.
"""

from collectors.simulated_feed import SimulatedLiveFeed
from collectors.demo_data import generate_mock_detections, DEMO_ORGANIZATION_ID

__all__ = ["SimulatedLiveFeed", "generate_mock_detections", "DEMO_ORGANIZATION_ID"]
