"""
NutriTrack backend application package
"""
