"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/conftest.py - shared fakes (cursor source, progress reporter, sink)
- tests/test_pipeline.py - end-to-end pipeline behaviour and failure paths
- tests/test_source.py - Elasticsearch scroll client against httpx.MockTransport
- remaining modules cover coordination, decoding, persistence and plumbing
"""
