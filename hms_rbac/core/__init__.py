"""
Core permission engine: configuration, persistence, caching and resolution.
"""
