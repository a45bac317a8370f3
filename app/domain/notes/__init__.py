"""Notes domain - general (non-session) client notes"""
