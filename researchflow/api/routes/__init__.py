"""
Route modules for the API.
"""
