"""
Services: money arithmetic, demo data, timers and the domain services.
"""
