"""Concrete collaborators: language-model services and SQL-backed stores."""
