"""
Tests for headerpwn
"""
