"""Ecclesia API: organization directory and Foundation School progression."""
