"""Notifications domain - in-app notifications, preferences, triggers and templates"""
