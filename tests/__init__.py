"""
BrowserStack Report - Test Suite Package.

Unit tests per module plus end-to-end pipeline tests. All HTTP traffic goes
through the scripted FakeClient in tests/fakes.py; no network access.
"""
