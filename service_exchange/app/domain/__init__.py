"""
Request models for the exchange routes.
"""
