"""
EasyTable restaurant reservation client.

Packages:
- easytable.auth: token decoding, session storage, session lifecycle, route guards
- easytable.api_client: async REST gateway
- easytable.restaurants / easytable.reservations: domain services
"""

__version__ = "0.1.0"
