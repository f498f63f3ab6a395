"""Tests for GraphGate."""
