"""Client portal domain - self-service appointments, documents, invoices and forms"""
