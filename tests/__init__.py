"""
Tests Package - Unit tests for CourseScout.
===========================================

Test modules:
- test_discovery: Client, pagination, detector, parser, web fallback, cache
- test_orchestrator: Extraction state machine, caching, concurrency
- test_search: Fuzzy matching and smart search
- test_tools: Per-entity Canvas tools
- test_shared: Utilities, errors, config, logging, server plumbing

Run tests with:
    pytest tests/
    pytest tests/ -v --cov=src/coursescout
"""
