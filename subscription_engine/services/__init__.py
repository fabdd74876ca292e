"""
Service layer for the subscription engine.
"""
