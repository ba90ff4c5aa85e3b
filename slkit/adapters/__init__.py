"""File adapters for registry snapshot exports."""
