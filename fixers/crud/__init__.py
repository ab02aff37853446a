"""Data-access helpers shared by the services."""
