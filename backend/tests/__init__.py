"""
Tests package for the Quickshare backend.

This package contains test suites organized by type:
- unit/: Fast tests of domain, application, API and task code
- integration/: Tests against the filesystem and a real Redis server
- property/: Property-based tests using Hypothesis
"""
