"""Strength estimation and scoreline probability models."""
