"""Billing domain - CPT service catalog, session billing, payments and invoices"""
