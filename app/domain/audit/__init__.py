"""Audit domain - HIPAA audit trail search, statistics and export"""
