"""Clinic document builder backend."""
