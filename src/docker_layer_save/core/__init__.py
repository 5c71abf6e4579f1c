"""Container runtime clients and core option types."""
