"""
Agricultural Marketplace Analytics

Dashboard report service combining tracked events with marketplace orders.
"""

__version__ = "1.0.0"
