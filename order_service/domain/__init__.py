"""
Domain rules shared by the order services
"""
