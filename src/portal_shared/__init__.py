"""Shared domain code for Plumbers Portal billing."""
