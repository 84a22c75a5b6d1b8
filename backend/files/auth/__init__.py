"""
Authentication gate for the file API.
"""
