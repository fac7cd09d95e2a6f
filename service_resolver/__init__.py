"""
did:hpass resolver driver service package.
"""
