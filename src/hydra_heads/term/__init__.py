"""Terminal multiplexer integration."""
