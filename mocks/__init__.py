"""
Mock upstream servers for local development and integration tests.
"""
