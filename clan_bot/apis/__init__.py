"""Async clients for the Wargaming, World of Tanks and Tomato.gg APIs."""
