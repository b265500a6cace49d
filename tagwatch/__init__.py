"""
tagwatch - detect Apple FindMy / AirTag devices that keep following you.

Scans BLE advertisements, tracks FindMy-shaped broadcasters over time and
shows the ones that have been near you the longest.
"""

__version__ = '0.1.0'
