"""
Attribution pipeline: window resolution and aggregation.
"""
