"""CLI module for postwhale."""
