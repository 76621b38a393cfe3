"""Optional post-processing of finished downloads."""
