"""
Configuration — Repository list, category flags and directory locations.
"""
