"""Domain and database models for zettelkit."""
