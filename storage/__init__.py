"""Artifact storage for exported reports."""
