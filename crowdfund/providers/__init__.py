"""Clients for the Trails API and the signing wallet."""
