"""Help center domain - guides, search and the navigation assistant"""
