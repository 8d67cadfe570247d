"""Shared configuration, errors, logging and data models."""
