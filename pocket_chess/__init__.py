"""Pocket Chess: tap-to-move chess against a friend or a random mover."""
