"""Service layer: release pipeline stages and their external collaborators."""
