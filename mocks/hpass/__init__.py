"""
Mock HealthPass registry, node and login service.
"""
