"""Clinical library domain - phrase categories, entries and connections"""
