"""
Utility modules for angle arithmetic and geomagnetic lookups.
"""
