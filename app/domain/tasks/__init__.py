"""Tasks domain - practice to-dos, overdue tracking and comments"""
