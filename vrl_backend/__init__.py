"""
Watched-directory set manager and background task status tracker for the
visual reference library browser.
"""
