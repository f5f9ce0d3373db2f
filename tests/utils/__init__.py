"""
Shared test doubles for the transport layer.
"""
