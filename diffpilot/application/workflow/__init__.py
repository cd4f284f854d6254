"""Change workflow: analyze -> preview -> apply."""
