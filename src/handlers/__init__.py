"""Lambda entrypoints, one module per resource."""
