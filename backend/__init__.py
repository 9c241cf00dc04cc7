"""Persistence layer backing the marketplace ledgers."""
