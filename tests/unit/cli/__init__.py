"""
Tests for the metalcloud-cli command line interface.
"""
