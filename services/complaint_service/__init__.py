"""Complaint Service: intake, lifecycle and notification fan-out for citizen complaints."""
