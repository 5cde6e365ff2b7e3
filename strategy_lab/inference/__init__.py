"""External inference collaborators."""
