"""
PageComposer - Services Package

Source registry, page catalog, reordering, diagnostics and assembly.
"""
