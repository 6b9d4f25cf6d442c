"""Test package for BrainPulse.

This package contains unit tests for the trial generators, scoring and
adaptive difficulty, headless simulations of whole games and sessions, and
smoke tests for the pygame UI.  The UI tests run headlessly using pygame's
dummy video driver to avoid opening real windows.  To run these tests,
execute ``pytest`` from the project root.
"""
