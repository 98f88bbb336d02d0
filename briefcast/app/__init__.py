"""HTTP surface for Briefcast."""
