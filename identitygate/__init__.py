"""
IdentityGate - per-user identities, alternative profiles and their snapshots.
"""

__version__ = "0.1.0"
