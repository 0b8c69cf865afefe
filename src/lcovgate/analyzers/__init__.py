"""Listing analysis against pull-request changes."""
