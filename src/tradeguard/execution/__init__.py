"""Order execution and sizing tools."""
