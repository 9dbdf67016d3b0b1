"""
Infrastructure Layer - External database adapters.
"""
