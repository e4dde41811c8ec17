"""Domain layer - tracks, blend algorithms and AI curation."""
