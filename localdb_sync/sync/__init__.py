"""
Local database sync: snapshot hydration, indexer runs and manifest publishing
"""
