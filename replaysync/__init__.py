"""Replay Sync: upload new osu! replays to object storage and record them in a metadata database."""

__version__ = "0.1.0"
