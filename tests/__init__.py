"""Tests for the GridShift integration."""
