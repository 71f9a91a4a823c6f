"""
Household Insights - AI-powered insight engine for household activity records
"""
__version__ = "1.0.0"
