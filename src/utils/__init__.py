"""Cross-cutting helpers: logging, errors, config, permissions."""
