"""Utility modules for Briefcast."""
