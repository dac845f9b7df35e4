"""
Test support utilities for handler-spine tests.

Helpers that are not fixtures but are shared across test modules live
here (feed doubles, event builders, loop helpers).
"""
