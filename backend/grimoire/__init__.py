"""Esoteric Herb Grimoire service."""
