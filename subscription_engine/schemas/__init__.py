"""
Pydantic schemas for the subscription engine.
"""
