"""Detect article IDs and page counts in portal text and allocate them to people."""
