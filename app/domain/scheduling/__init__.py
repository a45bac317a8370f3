"""Scheduling domain - therapy sessions, rooms and conflict detection"""
