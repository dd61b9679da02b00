"""
Tests package - Test suite for the CMState injector.

Contains:
- unit/: Unit tests for individual components, run without a cluster
"""
