"""
catalog_sync/api package marker.
"""
