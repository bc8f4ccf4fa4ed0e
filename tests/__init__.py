"""
Test suite for the SecureMeet login backend.
"""
