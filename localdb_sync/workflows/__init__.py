"""
Maintenance workflows for the published manifest
"""
