"""Layer diff and statistics analyzers."""
