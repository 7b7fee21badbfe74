"""
Sync core: schema resolution, row lookup, upsert, cleanup and verification
over a SheetStore.
"""
