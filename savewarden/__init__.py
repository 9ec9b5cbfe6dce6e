"""
SaveWarden: timestamped game save backups with per-location retention and restore.
"""
__version__ = "1.0.0"
