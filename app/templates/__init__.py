"""Bundled report templates, looked up by name when no file path matches."""
