"""Staging task generation, assembly and execution."""
