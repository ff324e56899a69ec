"""Remote deployment-management API providers"""
