"""Order management event subsystem."""
