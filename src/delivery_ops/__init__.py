"""
Delivery Operations Engine

Backend for a subscription delivery dashboard supporting:
- Delivery status lifecycle with compare-and-swap persistence
- Change notifications driving aggregate view invalidation
- Background simulation of agent activity for demo environments
"""

__version__ = "1.0.0"
__author__ = "Delivery Ops"
