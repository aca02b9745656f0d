"""Bundled collaborator implementations."""
