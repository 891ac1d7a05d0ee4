"""
buildtrack.api.routers

Route modules, one per resource family.
"""
