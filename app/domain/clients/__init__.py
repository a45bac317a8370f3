"""Clients domain - client records, bulk operations and portal invitations"""
