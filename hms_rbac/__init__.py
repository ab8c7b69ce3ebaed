"""
Permission resolution engine for the hospital management system.
"""

__version__ = "1.0.0"
