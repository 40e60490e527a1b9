"""Retail billing backend."""
