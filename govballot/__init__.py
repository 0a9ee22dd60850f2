"""Operator ballot voting over meta Merkle snapshots of delegated stake."""

__version__ = "0.1.0"