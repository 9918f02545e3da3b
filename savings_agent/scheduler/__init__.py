"""Autonomous scheduling loop."""
