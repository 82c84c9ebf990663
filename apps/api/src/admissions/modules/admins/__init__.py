"""Admin accounts, roles and capability checks."""
