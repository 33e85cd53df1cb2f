"""Command-line tools for gamewire."""
