"""Utility helpers for sectiontree."""
