"""Assessments domain - questionnaire templates, client assignments, scoring and reports"""
