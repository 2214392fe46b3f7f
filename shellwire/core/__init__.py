"""
Core layer: domain model and interfaces, free of transport details.
"""
