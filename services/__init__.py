"""Domain services used by the HTTP layer"""
