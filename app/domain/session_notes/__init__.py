"""Session notes domain - clinical documentation per therapy session"""
