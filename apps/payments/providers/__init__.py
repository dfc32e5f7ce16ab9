"""Payment switch protocol adapters."""
