"""
VoiceTrack Test Suite
=====================

Test Organization
-----------------
- tests/unit/   : Fast in-process unit tests (fake clock, fake storage)
- conftest.py   : Shared fixtures and domain factories
"""
