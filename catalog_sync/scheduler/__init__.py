"""
Scheduler package marker.
"""
